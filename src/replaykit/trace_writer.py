from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import re
from typing import Any, Iterable, Mapping

from .config import DEFAULT_TRACE_ROOT
from .models import ActionRecord, ElementFingerprint

TRACE_FILE_NAME = "ir.jsonl"
ELEMENT_TARGETING_TOOLS = frozenset({"click", "fill", "select_option", "assertElementVisible"})
RUNTIME_ONLY_TOOLS = frozenset({"scroll", "wait"})
REDACTED = "[REDACTED]"

_UNSAFE_SEGMENT_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_CREDENTIAL_PATTERN = re.compile(r"passw(?:or)?d|secret|token|api[_-]?key", re.IGNORECASE)
_LIVE_HANDLE_KEYS = frozenset({"page", "locator", "element", "handle"})
_FILL_VALUE_KEYS = ("text", "value")

_logger = logging.getLogger("replaykit.trace")


def is_element_targeting_tool(tool_name: str) -> bool:
    return tool_name in ELEMENT_TARGETING_TOOLS


def sanitize_path_segment(value: str) -> str:
    text = str(value or "").replace("\x00", "")
    text = text.replace("..", "").replace("/", "").replace("\\", "")
    text = _UNSAFE_SEGMENT_CHARS.sub("", text)
    return text if text.strip(".") else "unknown"


def build_trace_path(cwd: str | Path, run_id: str, trace_root: str = DEFAULT_TRACE_ROOT) -> Path:
    root = Path(cwd)
    for part in re.split(r"[\\/]+", trace_root):
        if part:
            root = root / sanitize_path_segment(part)
    return root / sanitize_path_segment(run_id) / TRACE_FILE_NAME


def to_safe_relative_path(cwd: str | Path, path: str | Path) -> str:
    base = Path(os.path.abspath(cwd))
    target = Path(os.path.abspath(path))
    try:
        relative = target.relative_to(base)
    except ValueError:
        return target.name
    return relative.as_posix() or target.name


def looks_like_credential(value: str | None) -> bool:
    return bool(value) and bool(_CREDENTIAL_PATTERN.search(str(value)))


def redact_tool_input(
    tool_name: str,
    tool_input: Mapping[str, Any] | None,
    template_vars: Mapping[str, str] | None = None,
    fingerprint: ElementFingerprint | None = None,
) -> dict[str, Any]:
    """Return a log-safe copy of ``tool_input``.

    Live handles are dropped, credential-named keys are masked, and a fill
    value is replaced by its length plus a reference to where it came from.
    A fill into a password input or a credential-named field is never stored
    literally.
    """
    source = dict(tool_input or {})
    redacted: dict[str, Any] = {}
    for key, value in source.items():
        if key in _LIVE_HANDLE_KEYS:
            continue
        if tool_name == "fill" and key in _FILL_VALUE_KEYS:
            continue
        if looks_like_credential(key):
            redacted[key] = REDACTED
            continue
        redacted[key] = _json_safe(value)

    if tool_name == "fill":
        literal = _fill_literal(source)
        if literal is not None:
            redacted["textLength"] = len(literal)
            redacted["fillValue"] = _describe_fill_value(literal, source, template_vars or {}, fingerprint)
    return redacted


def _fill_literal(tool_input: Mapping[str, Any]) -> str | None:
    for key in _FILL_VALUE_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str):
            return value
    return None


def _describe_fill_value(
    literal: str,
    tool_input: Mapping[str, Any],
    template_vars: Mapping[str, str],
    fingerprint: ElementFingerprint | None = None,
) -> dict[str, str]:
    for name in sorted(template_vars):
        if template_vars[name] and template_vars[name] == literal:
            return {"kind": "template_var", "name": name}
    target_hints = [
        value
        for key, value in tool_input.items()
        if key not in _FILL_VALUE_KEYS and key not in _LIVE_HANDLE_KEYS and isinstance(value, str)
    ]
    if any(looks_like_credential(key) for key in tool_input) or any(looks_like_credential(hint) for hint in target_hints):
        return {"kind": "redacted"}
    if fingerprint is not None and _is_secret_field(fingerprint):
        return {"kind": "redacted"}
    return {"kind": "literal", "value": literal}


def _is_secret_field(fingerprint: ElementFingerprint) -> bool:
    if (fingerprint.type_attr or "").lower() == "password":
        return True
    hints = (
        fingerprint.id,
        fingerprint.name_attr,
        fingerprint.placeholder,
        fingerprint.aria_label,
        fingerprint.accessible_name,
        fingerprint.test_id,
    )
    return any(looks_like_credential(hint) for hint in hints)


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return str(value)


class TraceWriter:
    def __init__(self, cwd: str | Path, run_id: str, trace_root: str = DEFAULT_TRACE_ROOT) -> None:
        self.cwd = Path(cwd)
        self.run_id = run_id
        self.path = build_trace_path(self.cwd, run_id, trace_root)

    def write(self, record: ActionRecord | Mapping[str, Any]) -> None:
        payload = record.to_dict() if isinstance(record, ActionRecord) else dict(record)
        line = json.dumps(payload, ensure_ascii=False)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def get_relative_path(self) -> str:
        return to_safe_relative_path(self.cwd, self.path)


def read_action_records(
    cwd: str | Path,
    run_id: str,
    trace_root: str = DEFAULT_TRACE_ROOT,
) -> list[ActionRecord]:
    path = build_trace_path(cwd, run_id, trace_root)
    if not path.exists():
        return []

    records: list[ActionRecord] = []
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            stripped = line.strip()
            if not stripped:
                continue
            try:
                payload = json.loads(stripped)
            except json.JSONDecodeError as exc:
                _logger.warning("Skipping malformed trace line %s in %s: %s", line_number, path, exc)
                continue
            if not isinstance(payload, dict):
                _logger.warning("Skipping non-object trace line %s in %s", line_number, path)
                continue
            try:
                records.append(ActionRecord.from_dict(payload))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                _logger.warning("Skipping unreadable trace record at line %s in %s: %s", line_number, path, exc)
    return records


def _same_spec_path(cwd: str | Path, left: str, right: str) -> bool:
    if left == right:
        return True
    base = Path(cwd)
    return os.path.normpath(base / left) == os.path.normpath(base / right)


def get_spec_action_records(
    cwd: str | Path,
    run_id: str,
    spec_path: str,
    trace_root: str = DEFAULT_TRACE_ROOT,
) -> list[ActionRecord]:
    return [
        record
        for record in read_action_records(cwd, run_id, trace_root)
        if _same_spec_path(cwd, record.spec_path, spec_path)
    ]


def has_valid_chosen_locator(record: ActionRecord) -> bool:
    element = record.element
    if element is None or element.chosen_locator is None:
        return False
    return bool(element.chosen_locator.code.strip())


def get_missing_locator_actions(records: Iterable[ActionRecord]) -> list[ActionRecord]:
    return [
        record
        for record in records
        if record.outcome.ok and is_element_targeting_tool(record.tool_name) and not has_valid_chosen_locator(record)
    ]
