from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable
from urllib.parse import urlsplit

from webarchivum.core.config import UNNAMED_INDEX_STEM, ArchiveSettings
from webarchivum.core.errors import ArchiveIOError, UnsafePathError
from webarchivum.core.files import join_within, write_bytes
from webarchivum.core.mime import extensions_for
from webarchivum.domain.models.webarchive import WebArchive, WebResource

logger = logging.getLogger(__name__)

EVENT_ARCHIVE = "archive"
EVENT_RESOURCE = "resource"
EVENT_FILE_WRITTEN = "file_written"
EVENT_COLLISION = "collision"

_QUERY_UNSAFE = re.compile(r"[^A-Za-z0-9=_-]+")
_MAX_QUERY_SUFFIX = 48


def _with_query_suffix(filename: str, query: str) -> str:
    """Fold a URL query into ``filename`` ahead of its extension."""
    cleaned = _QUERY_UNSAFE.sub("_", query).strip("_")
    if not cleaned or len(cleaned) > _MAX_QUERY_SUFFIX:
        digest = hashlib.sha256(query.encode("utf-8", errors="surrogatepass")).hexdigest()[:12]
        cleaned = f"{cleaned[:_MAX_QUERY_SUFFIX - 13]}_{digest}".lstrip("_")
    stem, dot, ext = filename.rpartition(".")
    if not dot or not stem:
        return f"{filename}_{cleaned}"
    return f"{stem}_{cleaned}.{ext}"


@dataclass(slots=True)
class ExtractionEvent:
    kind: str
    url: str
    depth: int
    path: Path | None = None
    size: int = 0


@dataclass(slots=True)
class ExtractionReport:
    base_dir: Path
    files_written: list[Path] = field(default_factory=list)
    bytes_written: int = 0
    collisions: list[str] = field(default_factory=list)
    _sizes: dict[Path, int] = field(default_factory=dict, repr=False)

    def record(self, path: Path, size: int) -> bool:
        """Account for a written file; return False when it replaced an earlier one."""
        previous = self._sizes.get(path)
        self._sizes[path] = size
        if previous is None:
            self.files_written.append(path)
            self.bytes_written += size
            return True
        self.bytes_written += size - previous
        return False


class ExtractionService:
    """Writes every resource of an archive tree below one destination directory.

    Resources from subframe archives share the same destination; there is no
    per-frame subdirectory. The first failure aborts the whole run.
    """

    def __init__(
        self,
        settings: ArchiveSettings | None = None,
        extensions_lookup: Callable[[str | None], list[str]] = extensions_for,
        on_event: Callable[[ExtractionEvent], None] | None = None,
    ) -> None:
        self.settings = settings or ArchiveSettings()
        self.extensions_lookup = extensions_lookup
        self.on_event = on_event

    def guess_extension(self, mime_type: str | None) -> str:
        candidates = self.extensions_lookup(mime_type)
        if not candidates:
            return self.settings.fallback_extension
        return candidates[-1]

    def derive_relative_path(self, resource: WebResource) -> list[str]:
        """Split a resource URL into the path segments it is stored under.

        Host first, then the URL path; the fragment is dropped. A query is kept
        as a sanitized suffix on the filename so ``s.css?v=1`` and
        ``s.css?v=2`` land in different files. A URL without a filename gets
        ``_unnamed_index.<ext>`` from its MIME type.
        """
        try:
            parts = urlsplit(resource.url)
        except ValueError as exc:
            raise UnsafePathError(f"Malformed URL: {exc}", url=resource.url) from exc
        host = parts.netloc.rpartition("@")[2]
        if host:
            remainder = f"{host}{parts.path or '/'}"
        elif parts.path:
            remainder = parts.path
        else:
            # Opaque URLs such as "about:" carry nothing but a scheme.
            remainder = f"{parts.scheme}/" if parts.scheme else ""

        if not remainder or remainder.endswith("/"):
            remainder = f"{remainder}{UNNAMED_INDEX_STEM}.{self.guess_extension(resource.mime_type)}"

        segments: list[str] = []
        for segment in PurePosixPath(remainder).parts:
            if segment in ("/", "."):
                continue
            if segment == "..":
                raise UnsafePathError("URL path climbs above its host", url=resource.url)
            segments.append(segment)

        if parts.query and segments:
            segments[-1] = _with_query_suffix(segments[-1], parts.query)
        return segments

    def derive_path(self, resource: WebResource, base_dir: Path) -> Path:
        return join_within(base_dir, self.derive_relative_path(resource), url=resource.url)

    def extract_resource(self, resource: WebResource, base_dir: Path, depth: int = 0) -> Path:
        self._emit(ExtractionEvent(kind=EVENT_RESOURCE, url=resource.url, depth=depth, size=resource.size))
        path = self.derive_path(resource, base_dir)
        logger.debug("Writing %s (%d bytes) to %s", resource.url, resource.size, path)
        try:
            write_bytes(path, resource.data)
        except OSError as exc:
            raise ArchiveIOError(
                f"Could not write resource: {exc.strerror or exc}",
                path=path,
                url=resource.url,
            ) from exc
        self._emit(
            ExtractionEvent(kind=EVENT_FILE_WRITTEN, url=resource.url, depth=depth, path=path, size=resource.size)
        )
        return path

    def extract_archive(self, archive: WebArchive, base_dir: Path) -> ExtractionReport:
        report = ExtractionReport(base_dir=base_dir)
        self._extract_into(archive, base_dir, report, depth=0)
        logger.info(
            "Extracted %d file(s), %d bytes into %s",
            len(report.files_written),
            report.bytes_written,
            base_dir,
        )
        return report

    def _extract_into(self, archive: WebArchive, base_dir: Path, report: ExtractionReport, depth: int) -> None:
        self._emit(ExtractionEvent(kind=EVENT_ARCHIVE, url=archive.main_resource.url, depth=depth))

        resources = [archive.main_resource, *(archive.subresources or ())]
        for resource in resources:
            path = self.extract_resource(resource, base_dir, depth)
            if not report.record(path, resource.size):
                logger.warning("%s overwrote an earlier resource at %s", resource.url, path)
                report.collisions.append(resource.url)
                self._emit(
                    ExtractionEvent(kind=EVENT_COLLISION, url=resource.url, depth=depth, path=path, size=resource.size)
                )

        for subframe in archive.subframe_archives or ():
            self._extract_into(subframe, base_dir, report, depth + 1)

    def _emit(self, event: ExtractionEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)
