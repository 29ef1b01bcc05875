from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console

from webarchivum.core.config import ArchiveSettings


@dataclass(slots=True)
class CLIContext:
    settings: ArchiveSettings
    console: Console
