from replaykit.template import extract_template_vars, render_template, replace_template_vars


def test_extract_template_vars_is_ordered_and_unique() -> None:
    text = "Fill {{USERNAME}} then {{ PASSWORD }} and {{USERNAME}} again, ignore {{lower}}"
    assert extract_template_vars(text) == ["USERNAME", "PASSWORD"]


def test_render_substitutes_known_values() -> None:
    result = render_template("Navigate to {{BASE_URL}}/login as {{ USERNAME }}", {"BASE_URL": "https://x.com", "USERNAME": "bob"})
    assert result.ok
    assert result.value == "Navigate to https://x.com/login as bob"


def test_render_reports_unknown_and_missing_sorted() -> None:
    result = render_template("{{ZED}} {{ALPHA}} {{EMPTY}}", {"EMPTY": ""})
    assert not result.ok
    assert result.message == "Unknown template variables: ALPHA, ZED\nMissing template variables: EMPTY"
    assert result.value == ""


def test_replace_template_vars_formats_each_name() -> None:
    assert replace_template_vars("Login as {{USERNAME}}", "REPLAYKIT_") == "Login as REPLAYKIT_USERNAME"
    assert replace_template_vars("Go to {{ BASE_URL }}/cart", "{ENV}_") == "Go to {ENV}_BASE_URL/cart"
