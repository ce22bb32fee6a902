from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from .models import ElementFingerprint

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle

MAX_TEXT_SNIPPET_LENGTH = 100
DEFAULT_MATCH_THRESHOLD = 0.5

_logger = logging.getLogger("replaykit.trace")

_FINGERPRINT_SCRIPT = """
(el) => {
  const attr = (name) => {
    const value = el.getAttribute(name);
    return value ? value : null;
  };

  let testId = null;
  for (const name of ['data-testid', 'data-test-id', 'data-test']) {
    const value = el.getAttribute(name);
    if (value) {
      testId = value;
      break;
    }
  }

  const labels = el.labels ? Array.from(el.labels) : [];
  const labelText = labels.length
    ? (labels[0].innerText || labels[0].textContent || '').trim()
    : null;

  return {
    tagName: (el.tagName || '').toLowerCase() || null,
    role: attr('role'),
    ariaLabel: attr('aria-label'),
    labelText: labelText || null,
    id: el.id || null,
    nameAttr: attr('name'),
    typeAttr: typeof el.type === 'string' && el.type ? el.type : null,
    placeholder: attr('placeholder'),
    testId,
    text: el.innerText || el.textContent || '',
  };
}
"""


def extract_fingerprint(element: ElementHandle) -> ElementFingerprint:
    try:
        payload = element.evaluate(_FINGERPRINT_SCRIPT)
        if not isinstance(payload, Mapping):
            return ElementFingerprint()
        return fingerprint_from_payload(payload)
    except Exception as exc:
        _logger.debug("Fingerprint extraction failed: %s", exc)
        return ElementFingerprint()


def fingerprint_from_payload(payload: Mapping[str, Any]) -> ElementFingerprint:
    aria_label = _text(payload.get("ariaLabel"))
    label_text = _text(payload.get("labelText"))
    raw_text = payload.get("text")
    snippet = str(raw_text).strip() if raw_text else ""
    snippet = snippet[:MAX_TEXT_SNIPPET_LENGTH]
    tag = _text(payload.get("tagName"))

    return ElementFingerprint(
        tag_name=tag.lower() if tag else None,
        role=_text(payload.get("role")),
        accessible_name=aria_label or (label_text.strip() if label_text else None) or None,
        id=_text(payload.get("id")),
        name_attr=_text(payload.get("nameAttr")),
        type_attr=_text(payload.get("typeAttr")),
        placeholder=_text(payload.get("placeholder")),
        aria_label=aria_label,
        test_id=_text(payload.get("testId")),
        text_snippet=snippet or None,
    )


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def fingerprints_match(
    a: ElementFingerprint,
    b: ElementFingerprint,
    *,
    threshold: float = DEFAULT_MATCH_THRESHOLD,
) -> bool:
    if a.test_id and b.test_id and a.test_id == b.test_id:
        return True
    if a.id and b.id and a.id == b.id:
        return True
    if a.tag_name and b.tag_name and a.tag_name != b.tag_name:
        return False

    checks: list[bool] = []
    for attr in ("role", "accessible_name", "name_attr", "type_attr", "placeholder", "aria_label"):
        left = getattr(a, attr)
        right = getattr(b, attr)
        if left and right:
            checks.append(left == right)

    if a.text_snippet and b.text_snippet:
        left_text = a.text_snippet.strip().lower()
        right_text = b.text_snippet.strip().lower()
        checks.append(left_text == right_text or left_text in right_text or right_text in left_text)

    if not checks:
        return True
    return sum(checks) / len(checks) >= threshold
