from fakes import FakeLocator, FakeNode, FakePage
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from replaykit.assertions import MAX_TEXT_PROBES, assert_element_visible, assert_text_present


def test_text_present_reports_first_visible_match() -> None:
    page = FakePage()
    page.register(("text", "Products", False), FakeNode(visible=False), FakeNode(visible=True), FakeNode())

    result = assert_text_present(page, "  Products ")

    assert result.ok
    assert result.data == {"textLength": 8, "visibleNth": 1}


def test_text_present_only_probes_first_matches() -> None:
    page = FakePage()
    hidden = [FakeNode(visible=False) for _ in range(MAX_TEXT_PROBES)]
    page.register(("text", "Row", False), *hidden, FakeNode(visible=True))

    result = assert_text_present(page, "Row")

    assert not result.ok
    assert result.error.code == "ASSERTION_FAILED"
    assert result.error.retriable
    assert result.error.message == 'Text not found on page: "Row"'


def test_text_present_rejects_invalid_input() -> None:
    assert assert_text_present(None, "x").error.code == "INVALID_INPUT"
    assert assert_text_present(FakePage(), "   ").error.message == "text is required"


def test_text_present_maps_playwright_timeout() -> None:
    page = FakePage()
    page.registry[("text", "Slow", False)] = FakeLocator(error=PlaywrightTimeoutError("Timeout 2000ms exceeded"))

    result = assert_text_present(page, "Slow")

    assert result.error.code == "TIMEOUT"
    assert result.error.retriable


def test_element_visible_outcomes() -> None:
    page = FakePage()
    visible = page.register(("test_id", "cart"), FakeNode())
    hidden = page.register(("test_id", "menu"), FakeNode(visible=False))

    assert assert_element_visible(page, visible).ok
    assert assert_element_visible(page, hidden).error.message == "Element is not visible"
    assert assert_element_visible(page, FakeLocator([])).error.message == "Element not found"
    assert assert_element_visible(page, None).error.code == "INVALID_INPUT"


def test_element_visible_reports_unexpected_errors() -> None:
    result = assert_element_visible(FakePage(), FakeLocator(error=ValueError("bad selector")))
    assert result.error.code == "ASSERTION_FAILED"
    assert not result.error.retriable
    assert result.error.message == "bad selector"
