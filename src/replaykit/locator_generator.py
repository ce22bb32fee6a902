from __future__ import annotations

from typing import Iterable

from .models import LOCATOR_PRIORITY, ElementFingerprint, LocatorCandidate, LocatorKind
from .selector_rules import (
    TEST_ID_ATTRIBUTES,
    build_attribute_selector,
    build_id_selector,
    is_clickable_tag,
    is_input_like,
    py_literal,
)

DEFAULT_TEXT_LIMIT = 50


class CandidateFactory:
    def __init__(self, fingerprint: ElementFingerprint, *, text_limit: int = DEFAULT_TEXT_LIMIT) -> None:
        self.fingerprint = fingerprint
        self.text_limit = max(1, int(text_limit))
        self._candidates: list[LocatorCandidate] = []
        self._seen: set[tuple[LocatorKind, str]] = set()

    def generate(self) -> list[LocatorCandidate]:
        self._add_test_id_strategies()
        self._add_role_strategy()
        self._add_label_strategy()
        self._add_placeholder_strategies()
        self._add_id_strategy()
        self._add_name_strategy()
        self._add_text_strategies()
        return list(self._candidates)

    def _add(self, kind: LocatorKind, value: str, code: str) -> None:
        key = (kind, code)
        if key in self._seen:
            return
        self._seen.add(key)
        self._candidates.append(LocatorCandidate(kind=kind, value=value, code=code))

    def _short_text(self) -> str | None:
        text = (self.fingerprint.text_snippet or "").strip()
        return text[: self.text_limit] or None

    def _add_test_id_strategies(self) -> None:
        test_id = self.fingerprint.test_id
        if not test_id:
            return
        self._add(LocatorKind.TEST_ID, test_id, f"page.get_by_test_id({py_literal(test_id)})")
        # Apps disagree on the attribute name, so every known spelling gets a hedge.
        for attr in TEST_ID_ATTRIBUTES:
            selector = build_attribute_selector(attr, test_id)
            self._add(LocatorKind.CSS_ATTR, f"{attr}={test_id}", f"page.locator({py_literal(selector)})")

    def _add_role_strategy(self) -> None:
        role = self.fingerprint.role
        if not role:
            return
        name = self.fingerprint.accessible_name or self._short_text()
        if not name:
            return
        self._add(
            LocatorKind.ROLE,
            f"{role}:{name}",
            f"page.get_by_role({py_literal(role)}, name={py_literal(name)})",
        )

    def _add_label_strategy(self) -> None:
        fp = self.fingerprint
        label = fp.aria_label
        if not label and fp.accessible_name and is_input_like(fp.tag_name):
            label = fp.accessible_name
        if label:
            self._add(LocatorKind.LABEL, label, f"page.get_by_label({py_literal(label)})")

    def _add_placeholder_strategies(self) -> None:
        placeholder = self.fingerprint.placeholder
        if not placeholder:
            return
        self._add(LocatorKind.PLACEHOLDER, placeholder, f"page.get_by_placeholder({py_literal(placeholder)})")
        if is_input_like(self.fingerprint.tag_name):
            selector = build_attribute_selector("placeholder", placeholder, tag=self.fingerprint.tag_name)
            self._add(LocatorKind.CSS_SELECTOR, selector, f"page.locator({py_literal(selector)})")

    def _add_id_strategy(self) -> None:
        id_value = (self.fingerprint.id or "").strip()
        if not id_value:
            return
        self._add(LocatorKind.CSS_ID, id_value, f"page.locator({py_literal(build_id_selector(id_value))})")

    def _add_name_strategy(self) -> None:
        name = self.fingerprint.name_attr
        if not name:
            return
        selector = build_attribute_selector("name", name)
        self._add(LocatorKind.CSS_ATTR, f"name={name}", f"page.locator({py_literal(selector)})")

    def _add_text_strategies(self) -> None:
        if not is_clickable_tag(self.fingerprint.tag_name):
            return
        text = self._short_text()
        if not text:
            return
        self._add(LocatorKind.TEXT_EXACT, text, f"page.get_by_text({py_literal(text)}, exact=True)")
        self._add(LocatorKind.TEXT, text, f"page.get_by_text({py_literal(text)})")


def generate_locator_candidates(
    fingerprint: ElementFingerprint,
    *,
    text_limit: int = DEFAULT_TEXT_LIMIT,
) -> list[LocatorCandidate]:
    return CandidateFactory(fingerprint, text_limit=text_limit).generate()


def get_locator_priority(kind: LocatorKind | str) -> int:
    return LOCATOR_PRIORITY[LocatorKind(kind)]


def sort_by_priority(candidates: Iterable[LocatorCandidate]) -> list[LocatorCandidate]:
    return sorted(candidates, key=lambda item: item.priority)


def build_selector(candidate: LocatorCandidate) -> str | None:
    """CSS selector behind a css* candidate, or None for semantic kinds."""
    if candidate.kind is LocatorKind.CSS_ID:
        return build_id_selector(candidate.value)
    if candidate.kind is LocatorKind.CSS_ATTR:
        attr, sep, value = candidate.value.partition("=")
        if not sep:
            return None
        return build_attribute_selector(attr, value)
    if candidate.kind is LocatorKind.CSS_SELECTOR:
        return candidate.value
    return None
