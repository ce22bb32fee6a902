from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

if TYPE_CHECKING:
    from playwright.sync_api import Locator, Page

MAX_TEXT_PROBES = 5

_logger = logging.getLogger("replaykit.assertions")


@dataclass(frozen=True, slots=True)
class ToolError:
    code: str
    message: str
    retriable: bool = False


@dataclass(frozen=True, slots=True)
class ToolResult:
    ok: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: ToolError | None = None

    @classmethod
    def success(cls, **data: Any) -> ToolResult:
        return cls(ok=True, data=dict(data))

    @classmethod
    def failure(cls, code: str, message: str, retriable: bool = False) -> ToolResult:
        return cls(ok=False, error=ToolError(code=code, message=message, retriable=retriable))


def _failure_from_exception(exc: Exception, default_code: str) -> ToolResult:
    if isinstance(exc, PlaywrightTimeoutError):
        return ToolResult.failure("TIMEOUT", str(exc), retriable=True)
    if isinstance(exc, PlaywrightError):
        return ToolResult.failure(default_code, str(exc), retriable=True)
    return ToolResult.failure(default_code, str(exc) or type(exc).__name__, retriable=False)


def assert_text_present(page: Page | None, text: str | None) -> ToolResult:
    """Pass when one of the first few ``get_by_text`` matches is visible.

    ``visibleNth`` in the result data is the index of that match, so the
    exported test can target the same one.
    """
    if page is None:
        return ToolResult.failure("INVALID_INPUT", "page is required")
    needle = text.strip() if isinstance(text, str) else ""
    if not needle:
        return ToolResult.failure("INVALID_INPUT", "text is required")

    try:
        locator = page.get_by_text(needle)
        count = int(locator.count())
        for index in range(min(count, MAX_TEXT_PROBES)):
            if locator.nth(index).is_visible():
                return ToolResult.success(textLength=len(needle), visibleNth=index)
    except Exception as exc:
        _logger.debug("Text probe failed for %r: %s", needle, exc)
        return _failure_from_exception(exc, "ASSERTION_FAILED")

    return ToolResult.failure("ASSERTION_FAILED", f'Text not found on page: "{needle}"', retriable=True)


def assert_element_visible(page: Page | None, locator: Locator | None) -> ToolResult:
    if page is None:
        return ToolResult.failure("INVALID_INPUT", "page is required")
    if locator is None:
        return ToolResult.failure("INVALID_INPUT", "locator is required")

    try:
        count = int(locator.count())
        if count > 0 and locator.first.is_visible():
            return ToolResult.success(matchCount=count)
    except Exception as exc:
        _logger.debug("Visibility probe failed: %s", exc)
        return _failure_from_exception(exc, "ASSERTION_FAILED")

    if count == 0:
        return ToolResult.failure("ASSERTION_FAILED", "Element not found", retriable=True)
    return ToolResult.failure("ASSERTION_FAILED", "Element is not visible", retriable=True)
