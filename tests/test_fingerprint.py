from fakes import FakeHandle, FakeNode

from replaykit.fingerprint import extract_fingerprint, fingerprint_from_payload, fingerprints_match
from replaykit.models import ElementFingerprint


def test_payload_text_is_trimmed_before_truncation() -> None:
    fingerprint = fingerprint_from_payload({"tagName": "DIV", "text": "      " + "x" * 150})
    assert fingerprint.tag_name == "div"
    assert fingerprint.text_snippet == "x" * 100


def test_accessible_name_prefers_aria_label_then_label_text() -> None:
    with_aria = fingerprint_from_payload({"tagName": "input", "ariaLabel": "Email", "labelText": "E-mail address"})
    with_label = fingerprint_from_payload({"tagName": "input", "labelText": "  E-mail address "})
    without = fingerprint_from_payload({"tagName": "input"})
    assert with_aria.accessible_name == "Email"
    assert with_label.accessible_name == "E-mail address"
    assert without.accessible_name is None


def test_empty_fields_are_never_stored() -> None:
    fingerprint = fingerprint_from_payload({"tagName": "", "id": "", "placeholder": None, "text": "   "})
    assert fingerprint.is_empty()
    assert fingerprint.to_dict() == {}

    built = ElementFingerprint(tag_name="button", role="")
    assert built.role is None
    assert built.to_dict() == {"tagName": "button"}


def test_extract_fingerprint_reads_handle_payload() -> None:
    handle = FakeHandle(FakeNode(payload={"tagName": "BUTTON", "testId": "save-btn", "text": "Save"}))
    fingerprint = extract_fingerprint(handle)
    assert fingerprint == ElementFingerprint(tag_name="button", test_id="save-btn", text_snippet="Save")


def test_extract_fingerprint_never_raises() -> None:
    handle = FakeHandle(FakeNode(), fail=True)
    assert extract_fingerprint(handle) == ElementFingerprint()


def test_shared_id_or_test_id_always_matches() -> None:
    original = ElementFingerprint(tag_name="input", id="email", role="textbox", placeholder="Email")
    moved = ElementFingerprint(tag_name="textarea", id="email", role="combobox", placeholder="Other")
    assert fingerprints_match(original, moved)

    tagged = ElementFingerprint(tag_name="a", test_id="nav-home")
    retagged = ElementFingerprint(tag_name="button", test_id="nav-home")
    assert fingerprints_match(tagged, retagged)


def test_different_tag_never_matches_without_stable_ids() -> None:
    a = ElementFingerprint(tag_name="button", role="button", accessible_name="Save")
    b = ElementFingerprint(tag_name="a", role="button", accessible_name="Save")
    assert not fingerprints_match(a, b)


def test_agreement_ratio_uses_only_overlapping_fields() -> None:
    original = ElementFingerprint(tag_name="input", role="textbox", accessible_name="Email", type_attr="email")
    half = ElementFingerprint(tag_name="input", role="textbox", accessible_name="E-mail")
    third = ElementFingerprint(tag_name="input", role="textbox", accessible_name="E-mail", type_attr="text")
    assert fingerprints_match(original, half)
    assert not fingerprints_match(original, third)
    assert fingerprints_match(original, third, threshold=0.3)


def test_text_snippet_compares_by_case_insensitive_containment() -> None:
    original = ElementFingerprint(tag_name="button", text_snippet="Add to cart")
    observed = ElementFingerprint(tag_name="button", text_snippet="add to cart (2)")
    assert fingerprints_match(original, observed)
    assert not fingerprints_match(original, ElementFingerprint(tag_name="button", text_snippet="Remove"))


def test_no_comparable_fields_is_treated_as_match() -> None:
    assert fingerprints_match(ElementFingerprint(tag_name="div"), ElementFingerprint(tag_name="div"))
    assert fingerprints_match(ElementFingerprint(), ElementFingerprint(role="button"))
