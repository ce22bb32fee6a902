from __future__ import annotations

from dataclasses import dataclass, field
import re

from .models import StepKind

_STEPS_SECTION_PATTERN = re.compile(r"^##\s*Steps\b.*?$(.*?)(?=^##\s|\Z)", re.IGNORECASE | re.MULTILINE | re.DOTALL)
_NUMBERED_STEP_PATTERN = re.compile(r"^\s*(\d+)[.)]\s+(.+?)\s*$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class SpecStep:
    index: int
    text: str
    kind: StepKind
    expected_result: str | None = None


@dataclass(frozen=True, slots=True)
class StructuredSpec:
    preconditions: list[str] = field(default_factory=list)
    steps: list[SpecStep] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def classify_step_kind(text: str) -> StepKind:
    stripped = (text or "").strip()
    lowered = stripped.lower()
    if lowered.startswith(("verify", "assert")):
        return "assertion"
    if stripped.startswith(("验证", "断言")):
        return "assertion"
    return "action"


def parse_numbered_steps(raw_markdown: str) -> dict[int, str]:
    match = _STEPS_SECTION_PATTERN.search(raw_markdown or "")
    if not match:
        return {}
    steps: dict[int, str] = {}
    for item in _NUMBERED_STEP_PATTERN.finditer(match.group(1)):
        steps[int(item.group(1))] = item.group(2).strip()
    return steps
