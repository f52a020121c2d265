"""Settings loading for docdrift.

Settings come from defaults, an optional config file and the environment, in
that order. The merged mapping is checked against the packaged
`docdrift.config.v1` schema before it is turned into `Settings`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from ..contracts.ids import CONFIG
from .env import getenv
from .errors import DriftError
from .exit_codes import ERR_CONFIG

CONFIG_ENV = "DOCDRIFT_CONFIG"
HASH_ALGORITHM_ENV = "DOCDRIFT_HASH_ALGORITHM"
LOG_JSON_ENV = "DOCDRIFT_LOG_JSON"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    hash_algorithm: str = "sha256"
    snippet_language: str = "xml"
    xml_namespaces: dict[str, str] = field(default_factory=dict)
    log_json: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise DriftError(f"config file not found: {path}", ERR_CONFIG, kind="missing_config")
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            payload = tomllib.loads(text)
            if path.name == "pyproject.toml":
                payload = payload.get("tool", {}).get("docdrift", {})
        elif suffix in {".yaml", ".yml"}:
            payload = yaml.safe_load(text) or {}
        else:
            raise DriftError(f"unsupported config format `{suffix or path.name}`: use .toml or .yaml", ERR_CONFIG, kind="invalid_config")
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise DriftError(f"unable to parse config {path}: {exc}", ERR_CONFIG, kind="invalid_config") from exc
    if not isinstance(payload, dict):
        raise DriftError(f"config {path} must hold a mapping at the top level", ERR_CONFIG, kind="invalid_config")
    return payload


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    algorithm = getenv(HASH_ALGORITHM_ENV)
    if algorithm:
        overrides["hash_algorithm"] = algorithm.strip().lower().replace("-", "_")
    raw_log_json = getenv(LOG_JSON_ENV)
    if raw_log_json is not None:
        value = raw_log_json.strip().lower()
        if value in _TRUE_VALUES:
            overrides["log_json"] = True
        elif value in _FALSE_VALUES:
            overrides["log_json"] = False
        else:
            raise DriftError(f"{LOG_JSON_ENV} must be a boolean, got `{raw_log_json}`", ERR_CONFIG, kind="invalid_config")
    return overrides


def load_settings(config_path: str | Path | None = None) -> Settings:
    from ..contracts.validate import validate

    merged: dict[str, Any] = Settings().to_dict()
    resolved = config_path or getenv(CONFIG_ENV)
    if resolved:
        merged.update(_read_config_file(Path(resolved)))
    merged.update(_env_overrides())
    try:
        validate(CONFIG, merged)
    except DriftError as exc:
        raise DriftError(exc.message, ERR_CONFIG, kind="invalid_config") from exc
    return Settings(
        hash_algorithm=str(merged["hash_algorithm"]),
        snippet_language=str(merged["snippet_language"]),
        xml_namespaces={str(k): str(v) for k, v in dict(merged["xml_namespaces"]).items()},
        log_json=bool(merged["log_json"]),
    )
