"""Record locator evidence during browser runs and export deterministic pytest-playwright tests."""

from __future__ import annotations

__version__ = "0.1.0"

from .exporter import export_playwright_test, is_spec_exportable
from .fingerprint import extract_fingerprint, fingerprints_match
from .locator_generator import generate_locator_candidates, get_locator_priority, sort_by_priority
from .locator_selector import choose_best_locator
from .logs import build_logger
from .models import (
    ActionOutcome,
    ActionRecord,
    ElementFingerprint,
    ElementRecord,
    ExportResult,
    LocatorCandidate,
    LocatorKind,
    LocatorValidation,
)
from .recorder import NULL_RECORDER, NullRecorder, PreActionResult, RecordActionContext, TraceRecorder, create_trace_recorder
from .validation import (
    filter_valid_candidates,
    filter_valid_candidates_by_action,
    get_validation_failure_summary,
    validate_candidate,
    validate_candidates,
)

__all__ = [
    "ActionOutcome",
    "ActionRecord",
    "ElementFingerprint",
    "ElementRecord",
    "ExportResult",
    "LocatorCandidate",
    "LocatorKind",
    "LocatorValidation",
    "NULL_RECORDER",
    "NullRecorder",
    "PreActionResult",
    "RecordActionContext",
    "TraceRecorder",
    "build_logger",
    "choose_best_locator",
    "create_trace_recorder",
    "export_playwright_test",
    "extract_fingerprint",
    "filter_valid_candidates",
    "filter_valid_candidates_by_action",
    "fingerprints_match",
    "generate_locator_candidates",
    "get_locator_priority",
    "get_validation_failure_summary",
    "is_spec_exportable",
    "sort_by_priority",
    "validate_candidate",
    "validate_candidates",
]
