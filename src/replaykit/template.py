from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Mapping

TEMPLATE_VAR_PATTERN = re.compile(r"\{\{\s*([A-Z0-9_]+)\s*\}\}")


@dataclass(frozen=True, slots=True)
class RenderTemplateResult:
    ok: bool
    value: str = ""
    message: str = ""


def extract_template_vars(text: str) -> list[str]:
    names: list[str] = []
    for match in TEMPLATE_VAR_PATTERN.finditer(text or ""):
        name = match.group(1).strip()
        if name and name not in names:
            names.append(name)
    return names


def replace_template_vars(text: str, prefix: str = "") -> str:
    """Replace each placeholder with its variable name behind ``prefix``."""
    return TEMPLATE_VAR_PATTERN.sub(lambda match: prefix + match.group(1).strip(), text or "")


def render_template(markdown: str, variables: Mapping[str, str | None]) -> RenderTemplateResult:
    unknown: set[str] = set()
    missing: set[str] = set()

    def _substitute(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        if key not in variables:
            unknown.add(key)
            return match.group(0)
        value = variables[key]
        if not value:
            missing.add(key)
            return match.group(0)
        return value

    rendered = TEMPLATE_VAR_PATTERN.sub(_substitute, markdown or "")
    if unknown or missing:
        lines: list[str] = []
        if unknown:
            lines.append(f"Unknown template variables: {', '.join(sorted(unknown))}")
        if missing:
            lines.append(f"Missing template variables: {', '.join(sorted(missing))}")
        return RenderTemplateResult(ok=False, message="\n".join(lines))
    return RenderTemplateResult(ok=True, value=rendered)
