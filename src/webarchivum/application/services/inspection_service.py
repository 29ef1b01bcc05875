from __future__ import annotations

from dataclasses import dataclass, field

from webarchivum.domain.models.webarchive import WebArchive, WebResource


@dataclass(slots=True)
class ResourceSummary:
    url: str
    mime_type: str | None
    size: int
    text_encoding_name: str | None = None
    frame_name: str | None = None
    has_response: bool = False

    @classmethod
    def from_resource(cls, resource: WebResource) -> ResourceSummary:
        return cls(
            url=resource.url,
            mime_type=resource.mime_type,
            size=resource.size,
            text_encoding_name=resource.text_encoding_name,
            frame_name=resource.frame_name,
            has_response=resource.response is not None,
        )


@dataclass(slots=True)
class ArchiveSummary:
    main_resource: ResourceSummary
    subresources: list[ResourceSummary] = field(default_factory=list)
    subframe_archives: list[ArchiveSummary] = field(default_factory=list)
    total_size: int = 0

    @property
    def subresource_count(self) -> int:
        return len(self.subresources)

    @property
    def subframe_archive_count(self) -> int:
        return len(self.subframe_archives)

    @property
    def resource_count(self) -> int:
        """Resources in this node and every nested archive."""
        nested = sum(child.resource_count for child in self.subframe_archives)
        return 1 + self.subresource_count + nested


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _describe_type(mime_type: str | None) -> str:
    return f'"{mime_type}"' if mime_type is not None else "unknown type"


class InspectionService:
    def __init__(self, indent: str = "  ") -> None:
        self.indent = indent

    def inspect(self, archive: WebArchive) -> ArchiveSummary:
        children = [self.inspect(child) for child in archive.subframe_archives or ()]
        subresources = [ResourceSummary.from_resource(item) for item in archive.subresources or ()]
        own_size = archive.main_resource.size + sum(item.size for item in subresources)
        return ArchiveSummary(
            main_resource=ResourceSummary.from_resource(archive.main_resource),
            subresources=subresources,
            subframe_archives=children,
            total_size=own_size + sum(child.total_size for child in children),
        )

    def render_listing(self, summary: ArchiveSummary, depth: int = 0) -> list[str]:
        prefix = self.indent * depth
        main = summary.main_resource
        lines = [
            f'{prefix}WebArchive of "{main.url}" ({_describe_type(main.mime_type)}, {main.size} bytes): '
            f"{_plural(summary.subresource_count, 'subresource')}, "
            f"{_plural(summary.subframe_archive_count, 'subframe archive')} "
            f"totalling {summary.total_size} bytes"
        ]
        for item in summary.subresources:
            lines.append(f'{prefix}{self.indent}- "{item.url}" ({_describe_type(item.mime_type)}, {item.size} bytes)')
        for child in summary.subframe_archives:
            lines.extend(self.render_listing(child, depth + 1))
        return lines
