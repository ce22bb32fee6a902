from __future__ import annotations

from typing import Iterable

from .locator_generator import sort_by_priority
from .models import LocatorCandidate, LocatorKind
from .selector_rules import is_interactive_role


def role_from_candidate(candidate: LocatorCandidate) -> str | None:
    if candidate.kind is not LocatorKind.ROLE:
        return None
    role, sep, _name = candidate.value.partition(":")
    if not sep or not role.strip():
        return None
    return role.strip()


def prefers_role_fallback(candidate: LocatorCandidate) -> bool:
    return is_interactive_role(role_from_candidate(candidate))


def is_role_fallback_candidate(candidate: LocatorCandidate) -> bool:
    """Non-unique interactive role locator that resolved to visible, matching elements."""
    check = candidate.validation
    return (
        prefers_role_fallback(candidate)
        and check.visible is True
        and check.fingerprint_match is not False
        and (check.error is None or check.error.startswith("Multiple elements found"))
    )


def choose_best_locator(candidates: Iterable[LocatorCandidate]) -> LocatorCandidate | None:
    ordered = sort_by_priority(candidates)

    for candidate in ordered:
        check = candidate.validation
        if check.unique and check.visible is not False and check.fingerprint_match is not False:
            return candidate

    # Role locators survive copy and translation changes better than text ones.
    for candidate in ordered:
        if is_role_fallback_candidate(candidate):
            return candidate

    return None
