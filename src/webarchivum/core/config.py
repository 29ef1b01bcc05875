from __future__ import annotations

import os
from dataclasses import dataclass, replace

from webarchivum.core.errors import ConfigurationError

DEFAULT_FALLBACK_EXTENSION = "txt"
UNNAMED_INDEX_STEM = "_unnamed_index"
ARCHIVE_FORMATS = ("binary", "xml")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ArchiveSettings:
    require_mime_type: bool = True
    emit_empty_optional_strings: bool = False
    fallback_extension: str = DEFAULT_FALLBACK_EXTENSION
    default_format: str = "binary"

    def with_overrides(self, **changes: object) -> ArchiveSettings:
        present = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **present) if present else self


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag, got {raw!r}")


def load_settings() -> ArchiveSettings:
    fallback_extension = (os.getenv("WEBARCHIVUM_FALLBACK_EXTENSION") or DEFAULT_FALLBACK_EXTENSION).strip()
    fallback_extension = fallback_extension.lstrip(".")
    if not fallback_extension or "/" in fallback_extension or "\\" in fallback_extension:
        raise ConfigurationError(f"WEBARCHIVUM_FALLBACK_EXTENSION is not a usable extension: {fallback_extension!r}")

    default_format = (os.getenv("WEBARCHIVUM_DEFAULT_FORMAT") or "binary").strip().lower()
    if default_format not in ARCHIVE_FORMATS:
        raise ConfigurationError(
            f"WEBARCHIVUM_DEFAULT_FORMAT must be one of {', '.join(ARCHIVE_FORMATS)}, got {default_format!r}"
        )

    return ArchiveSettings(
        require_mime_type=_env_flag("WEBARCHIVUM_REQUIRE_MIME_TYPE", True),
        emit_empty_optional_strings=_env_flag("WEBARCHIVUM_EMIT_EMPTY_STRINGS", False),
        fallback_extension=fallback_extension,
        default_format=default_format,
    )
