from __future__ import annotations

import re

TEST_ID_ATTRIBUTES: tuple[str, ...] = ("data-testid", "data-test-id", "data-test")
INPUT_LIKE_TAGS = frozenset({"input", "textarea", "select"})
CLICKABLE_TAGS = frozenset({"button", "a", "span", "div", "li", "td", "th"})
INTERACTIVE_ROLES = frozenset({"button", "link", "textbox", "combobox", "listbox"})

_CSS_SAFE_ID_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")


def normalize_space(value: str | None, limit: int = 200) -> str:
    if not value:
        return ""
    compact = re.sub(r"\s+", " ", str(value)).strip()
    return compact[:limit] if compact else ""


def is_input_like(tag_name: str | None) -> bool:
    return bool(tag_name) and tag_name.strip().lower() in INPUT_LIKE_TAGS


def is_clickable_tag(tag_name: str | None) -> bool:
    return bool(tag_name) and tag_name.strip().lower() in CLICKABLE_TAGS


def is_interactive_role(role: str | None) -> bool:
    return bool(role) and role.strip().lower() in INTERACTIVE_ROLES


def is_css_safe_id(value: str) -> bool:
    return bool(_CSS_SAFE_ID_PATTERN.fullmatch(value.strip()))


def escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def escape_py_string(value: str) -> str:
    """Escape text for a single-quoted Python string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def py_literal(value: str) -> str:
    return f"'{escape_py_string(value)}'"


def build_id_selector(raw_id: str) -> str:
    id_value = raw_id.strip()
    if is_css_safe_id(id_value):
        return f"#{id_value}"
    return f'[id="{escape_css_string(id_value)}"]'


def build_attribute_selector(attribute: str, value: str, tag: str | None = None) -> str:
    prefix = (tag or "").strip().lower()
    return f'{prefix}[{attribute}="{escape_css_string(value)}"]'
