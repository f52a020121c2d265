"""CLI payload output helpers."""

from __future__ import annotations

from .. import __version__
from ..core.context import RunContext
from ..core.errors import DriftError
from ..core.serialize import dumps_json


def emit(payload: dict[str, object], as_json: bool) -> None:
    print(dumps_json(payload, pretty=not as_json))


def build_base_payload(ctx: RunContext, status: str = "ok") -> dict[str, object]:
    return {
        "schema_version": 1,
        "tool": "docdrift",
        "version": __version__,
        "status": status,
        "run_id": ctx.run_id,
        "base_dir": str(ctx.base_dir),
        "format": ctx.output_format,
        "settings": ctx.settings.to_dict(),
    }


def resolve_output_format(*, cli_json: bool, cli_format: str | None) -> str:
    if cli_json:
        return "json"
    return cli_format or "text"


def render_error(error: DriftError, *, as_json: bool) -> str:
    if as_json:
        return dumps_json(
            {
                "schema_name": "docdrift.error.v1",
                "schema_version": 1,
                "tool": "docdrift",
                "status": "error",
                "errors": [error.to_payload()],
            },
            pretty=False,
        )
    return f"docdrift: {error.message}"
