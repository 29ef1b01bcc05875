from __future__ import annotations

from pathlib import Path

from webarchivum.core.errors import UnsafePathError


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_bytes(path: Path, data: bytes) -> int:
    """Create missing parents, then write ``data`` in full and close the file."""
    ensure_directory(path.parent)
    with path.open("wb") as fh:
        fh.write(data)
    return len(data)


def join_within(base_dir: Path, parts: list[str], url: str | None = None) -> Path:
    if not parts:
        raise UnsafePathError("Refusing to write to the destination directory itself", path=base_dir, url=url)
    for part in parts:
        if part in ("", ".", "..") or "/" in part or "\\" in part or "\x00" in part:
            raise UnsafePathError(f"Unsafe path segment {part!r}", path=base_dir, url=url)

    candidate = base_dir.joinpath(*parts)
    # Symlinks already present under base_dir could still point elsewhere.
    if not candidate.resolve().is_relative_to(base_dir.resolve()):
        raise UnsafePathError("Derived path escapes the destination directory", path=candidate, url=url)
    return candidate
