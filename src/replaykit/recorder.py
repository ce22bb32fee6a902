from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
import logging
from pathlib import Path
import time
from typing import TYPE_CHECKING, Any, Mapping

from .config import DEFAULT_CONFIG, ReplayConfig
from .fingerprint import extract_fingerprint
from .locator_generator import generate_locator_candidates
from .locator_selector import choose_best_locator
from .models import ActionOutcome, ActionRecord, ElementFingerprint, ElementRecord, LocatorCandidate
from .trace_writer import TraceWriter, is_element_targeting_tool, redact_tool_input
from .validation import (
    ValidateOptions,
    filter_valid_candidates_by_action,
    get_validation_failure_summary,
    validate_candidates,
)

if TYPE_CHECKING:
    from playwright.sync_api import Locator, Page

_logger = logging.getLogger("replaykit.recorder")


@dataclass(frozen=True, slots=True)
class PreActionResult:
    fingerprint: ElementFingerprint | None = None
    candidates: tuple[LocatorCandidate, ...] = ()


EMPTY_PRE_ACTION = PreActionResult()


@dataclass(slots=True)
class RecordActionContext:
    page: Any
    tool_name: str
    tool_input: dict[str, Any] = field(default_factory=dict)
    step_index: int | None = None
    step_text: str | None = None
    locator: Any = None


class TraceRecorder:
    """Captures locator evidence around each browser action and appends it to the run log.

    ``prepare_for_action`` must run before the action touches the page and
    ``record_action`` after it. Neither call raises.
    """

    def __init__(
        self,
        cwd: str | Path,
        run_id: str,
        spec_path: str,
        enabled: bool = True,
        template_vars: Mapping[str, str] | None = None,
        config: ReplayConfig | None = None,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        self.run_id = run_id
        self.spec_path = spec_path
        self.template_vars = dict(template_vars or {})
        self._enabled = bool(enabled)
        self._writer = TraceWriter(cwd, run_id, self.config.trace_root)
        self._validation_failures: deque[str] = deque(maxlen=self.config.max_validation_failures)

    def is_enabled(self) -> bool:
        return self._enabled

    def get_validation_failures(self) -> list[str]:
        return list(self._validation_failures)

    def trace_path(self) -> str:
        if not self._enabled:
            return ""
        return self._writer.get_relative_path()

    def prepare_for_action(self, page: Page, tool_name: str, locator: Locator | None) -> PreActionResult:
        if not self._enabled or not is_element_targeting_tool(tool_name) or locator is None:
            return EMPTY_PRE_ACTION

        timeout_ms = self.config.validation_timeout_ms
        try:
            handle = locator.element_handle(timeout=timeout_ms)
            if handle is None:
                return EMPTY_PRE_ACTION
            try:
                fingerprint = extract_fingerprint(handle)
            finally:
                handle.dispose()

            candidates = generate_locator_candidates(fingerprint, text_limit=self.config.text_limit)
            validated = validate_candidates(
                candidates,
                ValidateOptions(
                    page=page,
                    action_type=tool_name,
                    original_fingerprint=fingerprint,
                    timeout_ms=timeout_ms,
                    match_threshold=self.config.fingerprint_match_threshold,
                ),
            )
        except Exception as exc:
            _logger.debug("Pre-action capture failed for %s: %s", tool_name, exc)
            return EMPTY_PRE_ACTION
        return PreActionResult(fingerprint=fingerprint, candidates=tuple(validated))

    def record_action(
        self,
        context: RecordActionContext,
        outcome: ActionOutcome,
        pre_action_result: PreActionResult | None = None,
    ) -> None:
        if not self._enabled:
            return
        try:
            record = self._build_record(context, outcome, pre_action_result)
            self._writer.write(record)
        except Exception as exc:
            _logger.warning("Could not record %s at step %s: %s", context.tool_name, context.step_index, exc)

    def _build_record(
        self,
        context: RecordActionContext,
        outcome: ActionOutcome,
        pre_action_result: PreActionResult | None,
    ) -> ActionRecord:
        element: ElementRecord | None = None
        if (
            is_element_targeting_tool(context.tool_name)
            and pre_action_result is not None
            and pre_action_result.fingerprint is not None
        ):
            element = self._build_element(context, pre_action_result)

        return ActionRecord(
            run_id=self.run_id,
            spec_path=self.spec_path,
            step_index=context.step_index,
            step_text=context.step_text,
            tool_name=context.tool_name,
            tool_input=redact_tool_input(
                context.tool_name,
                context.tool_input,
                self.template_vars,
                fingerprint=pre_action_result.fingerprint if pre_action_result is not None else None,
            ),
            outcome=outcome,
            page_url=_current_url(context.page),
            element=element,
            timestamp=int(time.time() * 1000),
        )

    def _build_element(self, context: RecordActionContext, pre_action_result: PreActionResult) -> ElementRecord:
        candidates = pre_action_result.candidates
        usable = filter_valid_candidates_by_action(candidates, context.tool_name)
        chosen = choose_best_locator(usable)

        if candidates and chosen is None:
            summary = get_validation_failure_summary(candidates)
            if summary:
                self._validation_failures.append(f"{context.tool_name}[step={context.step_index}]: {summary}")

        return ElementRecord(
            fingerprint=pre_action_result.fingerprint or ElementFingerprint(),
            locator_candidates=candidates,
            chosen_locator=chosen,
        )


def _current_url(page: Any) -> str | None:
    if page is None:
        return None
    try:
        url = page.url
    except Exception:
        return None
    return str(url) if url else None


class NullRecorder:
    def is_enabled(self) -> bool:
        return False

    def get_validation_failures(self) -> list[str]:
        return []

    def trace_path(self) -> str:
        return ""

    def prepare_for_action(self, page: Any, tool_name: str, locator: Any) -> PreActionResult:
        return EMPTY_PRE_ACTION

    def record_action(
        self,
        context: RecordActionContext,
        outcome: ActionOutcome,
        pre_action_result: PreActionResult | None = None,
    ) -> None:
        return None


NULL_RECORDER = NullRecorder()


def create_trace_recorder(
    cwd: str | Path,
    run_id: str,
    spec_path: str,
    *,
    enabled: bool = True,
    template_vars: Mapping[str, str] | None = None,
    config: ReplayConfig | None = None,
) -> TraceRecorder | NullRecorder:
    if not enabled:
        return NULL_RECORDER
    return TraceRecorder(cwd, run_id, spec_path, enabled=True, template_vars=template_vars, config=config)
