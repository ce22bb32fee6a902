from __future__ import annotations

from dataclasses import asdict, dataclass, fields
import json
from pathlib import Path
import tempfile
from typing import Any

CONFIG_FILE_NAME = "replaykit.config.json"
DEFAULT_EXPORT_DIR = "tests/replaykit"
DEFAULT_TRACE_ROOT = ".replaykit/runs"


class ConfigError(Exception):
    def __init__(self, message: str, config_path: Path) -> None:
        super().__init__(message)
        self.config_path = config_path


@dataclass(frozen=True, slots=True)
class ReplayConfig:
    export_dir: str = DEFAULT_EXPORT_DIR
    trace_root: str = DEFAULT_TRACE_ROOT
    validation_timeout_ms: int = 2000
    fingerprint_match_threshold: float = 0.5
    text_limit: int = 50
    max_validation_failures: int = 50
    env_prefix: str = "REPLAYKIT_"


DEFAULT_CONFIG = ReplayConfig()

_CONFIG_TYPES: dict[str, type] = {
    "export_dir": str,
    "trace_root": str,
    "validation_timeout_ms": int,
    "fingerprint_match_threshold": float,
    "text_limit": int,
    "max_validation_failures": int,
    "env_prefix": str,
}


def load_config(cwd: str | Path) -> ReplayConfig:
    path = Path(cwd) / CONFIG_FILE_NAME
    if not path.exists() or not path.is_file():
        return DEFAULT_CONFIG

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Failed to read config file: {exc}", path) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file: {exc}", path) from exc

    if not isinstance(payload, dict):
        raise ConfigError("Invalid config file: top-level value must be an object", path)
    return _config_from_payload(payload, path)


def _config_from_payload(payload: dict[str, Any], path: Path) -> ReplayConfig:
    known = {item.name for item in fields(ReplayConfig)}
    unknown = sorted(key for key in payload if key not in known)
    issues = [f"  - {key}: unknown key" for key in unknown]

    values: dict[str, Any] = {}
    for key, expected in _CONFIG_TYPES.items():
        if key not in payload:
            continue
        raw = payload[key]
        if expected is float and isinstance(raw, int) and not isinstance(raw, bool):
            raw = float(raw)
        if not isinstance(raw, expected) or isinstance(raw, bool):
            issues.append(f"  - {key}: expected {expected.__name__}")
            continue
        values[key] = raw

    if "validation_timeout_ms" in values and values["validation_timeout_ms"] <= 0:
        issues.append("  - validation_timeout_ms: must be a positive integer")
    threshold = values.get("fingerprint_match_threshold")
    if threshold is not None and not 0.0 <= threshold <= 1.0:
        issues.append("  - fingerprint_match_threshold: must be between 0 and 1")
    for key in ("text_limit", "max_validation_failures"):
        if key in values and values[key] <= 0:
            issues.append(f"  - {key}: must be a positive integer")

    if issues:
        raise ConfigError("Invalid config file:\n" + "\n".join(issues), path)
    return ReplayConfig(**values)


def save_config(config: ReplayConfig, cwd: str | Path) -> tuple[bool, str | None]:
    path = Path(cwd) / CONFIG_FILE_NAME
    payload = json.dumps(asdict(config), ensure_ascii=True, indent=2, sort_keys=True)
    temp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(payload)
            handle.flush()
        temp_path.replace(path)
    except OSError as exc:
        if temp_path and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        return False, f"Could not write config: {exc}"
    return True, None
