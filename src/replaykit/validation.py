from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from .fingerprint import DEFAULT_MATCH_THRESHOLD, extract_fingerprint, fingerprints_match
from .locator_generator import build_selector
from .locator_selector import is_role_fallback_candidate
from .models import ElementFingerprint, LocatorCandidate, LocatorKind, LocatorValidation

if TYPE_CHECKING:
    from playwright.sync_api import Locator, Page

DEFAULT_TIMEOUT_MS = 2000

_logger = logging.getLogger("replaykit.trace")


@dataclass(frozen=True, slots=True)
class ActionRequirements:
    visible: bool
    enabled: bool


ACTION_REQUIREMENTS: dict[str, ActionRequirements] = {
    "click": ActionRequirements(visible=True, enabled=True),
    "fill": ActionRequirements(visible=True, enabled=True),
    "select_option": ActionRequirements(visible=True, enabled=True),
    "assertElementVisible": ActionRequirements(visible=True, enabled=False),
}

_DEFAULT_REQUIREMENTS = ActionRequirements(visible=True, enabled=False)


def requirements_for(action_type: str) -> ActionRequirements:
    return ACTION_REQUIREMENTS.get(action_type, _DEFAULT_REQUIREMENTS)


@dataclass(frozen=True, slots=True)
class ValidateOptions:
    page: Any
    action_type: str
    original_fingerprint: ElementFingerprint | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    match_threshold: float = DEFAULT_MATCH_THRESHOLD


def resolve_candidate_locator(page: Page, candidate: LocatorCandidate) -> Locator:
    kind = candidate.kind
    if kind is LocatorKind.TEST_ID:
        return page.get_by_test_id(candidate.value)
    if kind is LocatorKind.ROLE:
        role, _sep, name = candidate.value.partition(":")
        return page.get_by_role(role, name=name)  # type: ignore[arg-type]
    if kind is LocatorKind.LABEL:
        return page.get_by_label(candidate.value)
    if kind is LocatorKind.PLACEHOLDER:
        return page.get_by_placeholder(candidate.value)
    if kind is LocatorKind.TEXT_EXACT:
        return page.get_by_text(candidate.value, exact=True)
    if kind is LocatorKind.TEXT:
        return page.get_by_text(candidate.value)

    selector = build_selector(candidate)
    if not selector:
        raise ValueError(f"Cannot build selector for {kind.value} candidate: {candidate.value!r}")
    return page.locator(selector)


def validate_candidate(candidate: LocatorCandidate, options: ValidateOptions) -> LocatorCandidate:
    requirements = requirements_for(options.action_type)
    try:
        locator = resolve_candidate_locator(options.page, candidate)
        count = int(locator.count())
        if count <= 0:
            return candidate.with_validation(LocatorValidation(unique=False, error="No elements found"))

        target = locator.first
        visible = bool(target.is_visible())
        enabled: bool | None = None
        if requirements.enabled:
            enabled = bool(target.is_enabled(timeout=options.timeout_ms))

        fingerprint_match: bool | None = None
        original = options.original_fingerprint
        if original is not None and not original.is_empty():
            fingerprint_match = _probe_fingerprint_match(target, original, options)

        error = None if count == 1 else f"Multiple elements found: {count}"
        return candidate.with_validation(
            LocatorValidation(
                unique=count == 1,
                visible=visible,
                enabled=enabled,
                fingerprint_match=fingerprint_match,
                error=error,
            )
        )
    except Exception as exc:
        _logger.debug("Probe failed for %s: %s", candidate.code, exc)
        return candidate.with_validation(LocatorValidation(unique=False, error=str(exc) or type(exc).__name__))


def _probe_fingerprint_match(target: Locator, original: ElementFingerprint, options: ValidateOptions) -> bool | None:
    handle = target.element_handle(timeout=options.timeout_ms)
    if handle is None:
        return None
    try:
        observed = extract_fingerprint(handle)
    finally:
        handle.dispose()
    return fingerprints_match(original, observed, threshold=options.match_threshold)


def validate_candidates(candidates: Iterable[LocatorCandidate], options: ValidateOptions) -> list[LocatorCandidate]:
    return [validate_candidate(candidate, options) for candidate in candidates]


def is_valid_candidate(candidate: LocatorCandidate) -> bool:
    check = candidate.validation
    return (
        check.unique
        and check.visible is not False
        and check.enabled is not False
        and check.fingerprint_match is not False
    )


def filter_valid_candidates(candidates: Iterable[LocatorCandidate]) -> list[LocatorCandidate]:
    return [candidate for candidate in candidates if is_valid_candidate(candidate)]


def filter_valid_candidates_by_action(
    candidates: Iterable[LocatorCandidate],
    action_type: str,
) -> list[LocatorCandidate]:
    requirements = requirements_for(action_type)
    kept: list[LocatorCandidate] = []
    for candidate in candidates:
        check = candidate.validation
        if not check.unique and not is_role_fallback_candidate(candidate):
            continue
        if requirements.visible and check.visible is False:
            continue
        if requirements.enabled and check.enabled is False:
            continue
        if check.fingerprint_match is False:
            continue
        kept.append(candidate)
    return kept


def describe_validation_failure(candidate: LocatorCandidate) -> str | None:
    check = candidate.validation
    if check.error:
        return check.error
    if not check.unique:
        return "not unique"
    if check.visible is False:
        return "not visible"
    if check.enabled is False:
        return "disabled"
    if check.fingerprint_match is False:
        return "fingerprint mismatch"
    return None


def get_validation_failure_summary(candidates: Sequence[LocatorCandidate], limit: int = 5) -> str:
    parts: list[str] = []
    for candidate in candidates:
        reason = describe_validation_failure(candidate)
        if reason is None:
            continue
        parts.append(f"{candidate.kind.value}({candidate.value}): {reason}")
    if len(parts) > limit:
        hidden = len(parts) - limit
        parts = parts[:limit] + [f"+{hidden} more"]
    return "; ".join(parts)
