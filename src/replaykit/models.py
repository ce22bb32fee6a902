from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal, Mapping

StepKind = Literal["action", "assertion"]

FINGERPRINT_FIELDS: tuple[tuple[str, str], ...] = (
    ("tag_name", "tagName"),
    ("role", "role"),
    ("accessible_name", "accessibleName"),
    ("id", "id"),
    ("name_attr", "nameAttr"),
    ("type_attr", "typeAttr"),
    ("placeholder", "placeholder"),
    ("aria_label", "ariaLabel"),
    ("test_id", "testId"),
    ("text_snippet", "textSnippet"),
)


class LocatorKind(str, Enum):
    TEST_ID = "getByTestId"
    ROLE = "getByRole"
    LABEL = "getByLabel"
    PLACEHOLDER = "getByPlaceholder"
    CSS_ID = "cssId"
    CSS_ATTR = "cssAttr"
    CSS_SELECTOR = "cssSelector"
    TEXT_EXACT = "textExact"
    TEXT = "text"


LOCATOR_PRIORITY: dict[LocatorKind, int] = {
    LocatorKind.TEST_ID: 1,
    LocatorKind.ROLE: 2,
    LocatorKind.LABEL: 3,
    LocatorKind.PLACEHOLDER: 4,
    LocatorKind.CSS_ID: 5,
    LocatorKind.CSS_ATTR: 6,
    LocatorKind.CSS_SELECTOR: 7,
    LocatorKind.TEXT_EXACT: 8,
    LocatorKind.TEXT: 9,
}


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


@dataclass(frozen=True, slots=True)
class ElementFingerprint:
    tag_name: str | None = None
    role: str | None = None
    accessible_name: str | None = None
    id: str | None = None
    name_attr: str | None = None
    type_attr: str | None = None
    placeholder: str | None = None
    aria_label: str | None = None
    test_id: str | None = None
    text_snippet: str | None = None

    def __post_init__(self) -> None:
        # Empty strings are never stored; absent fields stay None.
        for attr, _key in FINGERPRINT_FIELDS:
            value = getattr(self, attr)
            if value is not None and not str(value):
                object.__setattr__(self, attr, None)

    def is_empty(self) -> bool:
        return all(getattr(self, attr) is None for attr, _key in FINGERPRINT_FIELDS)

    def to_dict(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        for attr, key in FINGERPRINT_FIELDS:
            value = getattr(self, attr)
            if value:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> ElementFingerprint:
        if not isinstance(payload, Mapping):
            return cls()
        return cls(**{attr: _clean(payload.get(key)) for attr, key in FINGERPRINT_FIELDS})


@dataclass(frozen=True, slots=True)
class LocatorValidation:
    unique: bool
    visible: bool | None = None
    enabled: bool | None = None
    fingerprint_match: bool | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"unique": self.unique}
        if self.visible is not None:
            payload["visible"] = self.visible
        if self.enabled is not None:
            payload["enabled"] = self.enabled
        if self.fingerprint_match is not None:
            payload["fingerprintMatch"] = self.fingerprint_match
        if self.error:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> LocatorValidation:
        if not isinstance(payload, Mapping):
            return cls(unique=False)
        return cls(
            unique=bool(payload.get("unique", False)),
            visible=_optional_bool(payload.get("visible")),
            enabled=_optional_bool(payload.get("enabled")),
            fingerprint_match=_optional_bool(payload.get("fingerprintMatch")),
            error=_clean(payload.get("error")),
        )


def _optional_bool(value: Any) -> bool | None:
    if value is None:
        return None
    return bool(value)


@dataclass(frozen=True, slots=True)
class LocatorCandidate:
    kind: LocatorKind
    value: str
    code: str
    validation: LocatorValidation = field(default_factory=lambda: LocatorValidation(unique=False))

    @property
    def priority(self) -> int:
        return LOCATOR_PRIORITY[self.kind]

    def with_validation(self, validation: LocatorValidation) -> LocatorCandidate:
        return replace(self, validation=validation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "value": self.value,
            "code": self.code,
            "validation": self.validation.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> LocatorCandidate:
        return cls(
            kind=LocatorKind(str(payload.get("kind"))),
            value=str(payload.get("value", "") or ""),
            code=str(payload.get("code", "") or ""),
            validation=LocatorValidation.from_dict(payload.get("validation")),
        )


@dataclass(frozen=True, slots=True)
class ElementRecord:
    fingerprint: ElementFingerprint
    locator_candidates: tuple[LocatorCandidate, ...] = ()
    chosen_locator: LocatorCandidate | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fingerprint": self.fingerprint.to_dict(),
            "locatorCandidates": [candidate.to_dict() for candidate in self.locator_candidates],
        }
        if self.chosen_locator is not None:
            payload["chosenLocator"] = self.chosen_locator.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ElementRecord:
        candidates = tuple(
            _parse_candidate(item)
            for item in payload.get("locatorCandidates", []) or []
            if isinstance(item, Mapping)
        )
        chosen_raw = payload.get("chosenLocator")
        return cls(
            fingerprint=ElementFingerprint.from_dict(payload.get("fingerprint")),
            locator_candidates=tuple(item for item in candidates if item is not None),
            chosen_locator=_parse_candidate(chosen_raw) if isinstance(chosen_raw, Mapping) else None,
        )


def _parse_candidate(payload: Mapping[str, Any]) -> LocatorCandidate | None:
    try:
        return LocatorCandidate.from_dict(payload)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    ok: bool
    error_code: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if not self.ok:
            if self.error_code:
                payload["errorCode"] = self.error_code
            if self.error_message:
                payload["errorMessage"] = self.error_message
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> ActionOutcome:
        if not isinstance(payload, Mapping):
            return cls(ok=False)
        return cls(
            ok=bool(payload.get("ok", False)),
            error_code=_clean(payload.get("errorCode")),
            error_message=_clean(payload.get("errorMessage")),
        )


@dataclass(frozen=True, slots=True)
class ActionRecord:
    run_id: str
    spec_path: str
    step_index: int | None
    tool_name: str
    tool_input: dict[str, Any]
    outcome: ActionOutcome
    timestamp: int
    step_text: str | None = None
    page_url: str | None = None
    element: ElementRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "runId": self.run_id,
            "specPath": self.spec_path,
            "stepIndex": self.step_index,
        }
        if self.step_text is not None:
            payload["stepText"] = self.step_text
        payload["toolName"] = self.tool_name
        payload["toolInput"] = dict(self.tool_input)
        payload["outcome"] = self.outcome.to_dict()
        if self.page_url is not None:
            payload["pageUrl"] = self.page_url
        if self.element is not None:
            payload["element"] = self.element.to_dict()
        payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ActionRecord:
        raw_index = payload.get("stepIndex")
        step_index = raw_index if isinstance(raw_index, int) and not isinstance(raw_index, bool) else None
        raw_input = payload.get("toolInput")
        raw_element = payload.get("element")
        return cls(
            run_id=str(payload.get("runId", "") or ""),
            spec_path=str(payload.get("specPath", "") or ""),
            step_index=step_index,
            step_text=_clean(payload.get("stepText")),
            tool_name=str(payload.get("toolName", "") or ""),
            tool_input=dict(raw_input) if isinstance(raw_input, Mapping) else {},
            outcome=ActionOutcome.from_dict(payload.get("outcome")),
            page_url=_clean(payload.get("pageUrl")),
            element=ElementRecord.from_dict(raw_element) if isinstance(raw_element, Mapping) else None,
            timestamp=int(payload.get("timestamp", 0) or 0),
        )


@dataclass(frozen=True, slots=True)
class ExportResult:
    ok: bool
    export_path: str | None = None
    relative_path: str | None = None
    reason: str | None = None
    missing_locators: tuple[str, ...] = ()

    @classmethod
    def success(cls, export_path: str, relative_path: str) -> ExportResult:
        return cls(ok=True, export_path=export_path, relative_path=relative_path)

    @classmethod
    def failure(cls, reason: str, missing_locators: tuple[str, ...] = ()) -> ExportResult:
        return cls(ok=False, reason=reason, missing_locators=missing_locators)
