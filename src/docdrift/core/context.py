from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from .config import Settings, load_settings
from .env import getenv

OutputFormat = Literal["text", "json"]


def _default_run_id() -> str:
    return f"drift-{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}-{secrets.token_hex(4)}"


@dataclass(frozen=True)
class RunContext:
    run_id: str
    base_dir: Path
    output_format: OutputFormat = "text"
    verbose: bool = False
    quiet: bool = False
    log_json: bool = False
    settings: Settings = field(default_factory=Settings)

    def resolve(self, file_path: str) -> Path:
        path = Path(file_path)
        return path if path.is_absolute() else self.base_dir / path

    @classmethod
    def default(cls) -> "RunContext":
        return cls(run_id=getenv("RUN_ID") or _default_run_id(), base_dir=Path.cwd())

    @classmethod
    def from_args(
        cls,
        run_id: str | None,
        base_dir: str | Path | None,
        config_path: str | None = None,
        output_format: OutputFormat = "text",
        verbose: bool = False,
        quiet: bool = False,
        log_json: bool = False,
    ) -> "RunContext":
        settings = load_settings(config_path)
        return cls(
            run_id=run_id or getenv("RUN_ID") or _default_run_id(),
            base_dir=Path(base_dir).resolve() if base_dir else Path.cwd(),
            output_format=output_format,
            verbose=verbose,
            quiet=quiet,
            log_json=log_json or settings.log_json,
            settings=settings,
        )
