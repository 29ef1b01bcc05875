from __future__ import annotations

import mimetypes

# Built-in table only; host files such as /etc/mime.types would make lookups
# differ between machines.
_TABLE = mimetypes.MimeTypes(filenames=())


def extensions_for(mime_type: str | None) -> list[str]:
    """Return known extensions for ``mime_type`` without leading dots, in table order."""
    if not mime_type:
        return []
    essence = mime_type.split(";", 1)[0].strip().lower()
    if not essence:
        return []
    return [ext.lstrip(".") for ext in _TABLE.guess_all_extensions(essence, strict=False)]
