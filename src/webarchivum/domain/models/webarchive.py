from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class WebResource:
    """A single resource needed to display an archived page.

    ``data`` should be interpreted according to ``mime_type`` and, for text,
    ``text_encoding_name``. ``response`` is an opaque blob, usually a nested
    property list describing the server response.
    """

    data: bytes
    url: str
    mime_type: str | None
    text_encoding_name: str | None = None
    frame_name: str | None = None
    response: bytes | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class WebArchive:
    """A page and everything needed to render it offline.

    ``subresources`` and ``subframe_archives`` are ``None`` when the archive
    has no such list, which is not the same as an empty list.
    """

    main_resource: WebResource
    subresources: tuple[WebResource, ...] | None = None
    subframe_archives: tuple[WebArchive, ...] | None = None

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples so the tree stays immutable.
        if self.subresources is not None and not isinstance(self.subresources, tuple):
            object.__setattr__(self, "subresources", tuple(self.subresources))
        if self.subframe_archives is not None and not isinstance(self.subframe_archives, tuple):
            object.__setattr__(self, "subframe_archives", tuple(self.subframe_archives))
