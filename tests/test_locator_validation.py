from fakes import FakeLocator, FakeNode, FakePage

from replaykit.models import ElementFingerprint, LocatorCandidate, LocatorKind, LocatorValidation
from replaykit.validation import (
    ValidateOptions,
    filter_valid_candidates,
    filter_valid_candidates_by_action,
    get_validation_failure_summary,
    requirements_for,
    validate_candidate,
    validate_candidates,
)

SAVE_PAYLOAD = {"tagName": "button", "role": "button", "ariaLabel": "Save", "testId": "save", "text": "Save"}


def _candidate(kind: LocatorKind, value: str, code: str = "page.x()", **validation) -> LocatorCandidate:
    candidate = LocatorCandidate(kind=kind, value=value, code=code)
    if validation:
        candidate = candidate.with_validation(LocatorValidation(**{"unique": False, **validation}))
    return candidate


def _options(page: FakePage, action_type: str = "click", original: ElementFingerprint | None = None) -> ValidateOptions:
    return ValidateOptions(page=page, action_type=action_type, original_fingerprint=original, timeout_ms=500)


def test_unique_visible_enabled_candidate_passes() -> None:
    page = FakePage()
    page.register(("test_id", "save"), FakeNode(payload=SAVE_PAYLOAD))
    original = ElementFingerprint(tag_name="button", test_id="save")

    result = validate_candidate(_candidate(LocatorKind.TEST_ID, "save"), _options(page, original=original))

    assert result.validation == LocatorValidation(unique=True, visible=True, enabled=True, fingerprint_match=True)


def test_fingerprint_handle_is_disposed_after_probe() -> None:
    page = FakePage()
    node = FakeNode(payload=SAVE_PAYLOAD)
    page.register(("role", "button", "Save"), node)
    original = ElementFingerprint(tag_name="button", role="button", accessible_name="Save")

    result = validate_candidate(_candidate(LocatorKind.ROLE, "button:Save"), _options(page, original=original))

    assert result.validation.fingerprint_match is True
    assert len(node.handles) == 1
    assert node.handles[0].disposed


def test_missing_and_multiple_matches_are_not_unique() -> None:
    page = FakePage()
    page.register(("text", "Save", True), FakeNode(), FakeNode())

    missing = validate_candidate(_candidate(LocatorKind.CSS_ID, "nope"), _options(page))
    multiple = validate_candidate(_candidate(LocatorKind.TEXT_EXACT, "Save"), _options(page))

    assert missing.validation == LocatorValidation(unique=False, error="No elements found")
    assert multiple.validation.unique is False
    assert multiple.validation.visible is True
    assert multiple.validation.error == "Multiple elements found: 2"


def test_enabled_is_only_checked_for_mutating_actions() -> None:
    page = FakePage()
    page.register(("css", "#submit"), FakeNode(enabled=False))
    candidate = _candidate(LocatorKind.CSS_ID, "submit")

    clicked = validate_candidate(candidate, _options(page, "click"))
    asserted = validate_candidate(candidate, _options(page, "assertElementVisible"))

    assert clicked.validation.enabled is False
    assert asserted.validation.enabled is None
    assert requirements_for("fill").enabled
    assert not requirements_for("assertElementVisible").enabled


def test_probe_exception_only_invalidates_that_candidate() -> None:
    page = FakePage()
    page.registry[("css", '[name="q"]')] = FakeLocator(error=RuntimeError("frame was detached"))
    page.register(("placeholder", "Search"), FakeNode())
    candidates = [
        _candidate(LocatorKind.CSS_ATTR, "name=q"),
        _candidate(LocatorKind.PLACEHOLDER, "Search"),
    ]

    validated = validate_candidates(candidates, _options(page, "fill"))

    assert validated[0].validation == LocatorValidation(unique=False, error="frame was detached")
    assert validated[1].validation.unique is True


def test_fingerprint_mismatch_is_reported() -> None:
    page = FakePage()
    page.register(("css", "#save"), FakeNode(payload={"tagName": "a", "text": "Save"}))
    original = ElementFingerprint(tag_name="button", text_snippet="Save")

    result = validate_candidate(_candidate(LocatorKind.CSS_ID, "save"), _options(page, original=original))

    assert result.validation.fingerprint_match is False


def test_filter_valid_candidates_requires_every_check() -> None:
    good = _candidate(LocatorKind.TEST_ID, "a", unique=True, visible=True, enabled=True)
    hidden = _candidate(LocatorKind.CSS_ID, "b", unique=True, visible=False)
    disabled = _candidate(LocatorKind.CSS_ID, "c", unique=True, visible=True, enabled=False)
    assert filter_valid_candidates([good, hidden, disabled]) == [good]


def test_filter_by_action_keeps_interactive_role_for_fallback() -> None:
    role = _candidate(LocatorKind.ROLE, "button:Save", unique=False, visible=True, enabled=True)
    text = _candidate(LocatorKind.TEXT, "Save", unique=False, visible=True, enabled=True)
    disabled = _candidate(LocatorKind.CSS_ID, "save", unique=True, visible=True, enabled=False)

    assert filter_valid_candidates_by_action([role, text, disabled], "click") == [role]
    assert filter_valid_candidates_by_action([disabled], "assertElementVisible") == [disabled]


def test_failure_summary_lists_reasons_and_truncates() -> None:
    candidates = [
        _candidate(LocatorKind.CSS_ID, f"id{index}", unique=False, error="No elements found") for index in range(7)
    ]
    candidates.append(_candidate(LocatorKind.TEST_ID, "ok", unique=True, visible=True))

    summary = get_validation_failure_summary(candidates)

    assert summary.startswith("cssId(id0): No elements found; cssId(id1): No elements found")
    assert summary.endswith("+2 more")
    assert "getByTestId" not in summary


def test_filter_by_action_drops_role_that_resolved_to_nothing() -> None:
    page = FakePage()
    unresolved = validate_candidate(
        _candidate(LocatorKind.ROLE, "button:Save", code="page.get_by_role('button', name='Save')"),
        _options(page),
    )
    assert unresolved.validation == LocatorValidation(unique=False, error="No elements found")
    assert filter_valid_candidates_by_action([unresolved], "click") == []
