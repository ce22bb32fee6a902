from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import re
import tempfile
from typing import Iterable, Sequence
from urllib.parse import urlsplit

from .config import DEFAULT_CONFIG, ReplayConfig
from .models import ActionRecord, ExportResult
from .selector_rules import normalize_space, py_literal
from .spec_types import SpecStep, StructuredSpec, parse_numbered_steps
from .template import TEMPLATE_VAR_PATTERN, extract_template_vars, replace_template_vars
from .trace_writer import (
    RUNTIME_ONLY_TOOLS,
    get_missing_locator_actions,
    get_spec_action_records,
    has_valid_chosen_locator,
    to_safe_relative_path,
)

ASSERTION_TOOLS = frozenset({"assertTextPresent", "assertElementVisible"})
BASE_URL_CONSTANT = "BASE_URL"
LOGIN_BASE_URL_CONSTANT = "LOGIN_BASE_URL"

_NAVIGATE_PATTERNS = (
    re.compile(r"^navigate\s+to\s+(\S+)", re.IGNORECASE),
    re.compile(r"^go\s+to\s+(\S+)", re.IGNORECASE),
    re.compile(r"^导航到\s*(\S+)"),
)
_FILL_PATTERNS = (
    re.compile(r"^fill\s+(?:the\s+)?[\"']?([^\"']+?)[\"']?\s+(?:field\s+)?with\s+(.+)$", re.IGNORECASE),
    re.compile(r"^在\s*[\"']?([^\"']+?)[\"']?\s*(?:字段)?(?:中)?输入\s*(.+)$"),
)
_TYPE_INTO_PATTERN = re.compile(
    r"^(?:type|enter|input)\s+(.+?)\s+(?:in|into)\s+(?:the\s+)?[\"']?([^\"']+?)[\"']?(?:\s+field)?$",
    re.IGNORECASE,
)
_SELECT_PATTERNS = (
    re.compile(r"^select\s+[\"']?([^\"']+?)[\"']?\s+(?:from|in)\s+(?:the\s+)?[\"']?([^\"']+?)[\"']?$", re.IGNORECASE),
    re.compile(r"^选择\s*[\"']?([^\"']+?)[\"']?\s*(?:从|在)\s*[\"']?([^\"']+?)[\"']?$"),
)
_STEP_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("navigate", ("navigate", "go to", "导航")),
    ("fill", ("fill", "type ", "enter ", "输入")),
    ("click", ("click", "点击")),
    ("select_option", ("select", "选择")),
)
_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
_HEADER_PATTERN = re.compile(r"^# Generated by replaykit from (.+)\. Re-export instead of editing by hand\.$")

_logger = logging.getLogger("replaykit.export")


@dataclass(frozen=True, slots=True)
class StepVars:
    raw_text: str
    names: tuple[str, ...]


@dataclass(slots=True)
class StepCode:
    lines: list[str] = field(default_factory=list)
    error: str | None = None
    env_vars: set[str] = field(default_factory=set)
    needs_login_base_url: bool = False


@dataclass(frozen=True, slots=True)
class _ExportContext:
    base_url: str
    login_base_url: str | None


def parse_raw_spec_vars(raw_content: str) -> dict[int, StepVars]:
    """Map step index to the ``{{VAR}}`` names its unrendered text used."""
    step_vars: dict[int, StepVars] = {}
    for index, raw_text in parse_numbered_steps(raw_content).items():
        names = extract_template_vars(raw_text)
        if names:
            step_vars[index] = StepVars(raw_text=raw_text, names=tuple(names))
    return step_vars


def parse_navigate_step(step_text: str) -> str | None:
    text = (step_text or "").strip()
    for pattern in _NAVIGATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def parse_fill_step(step_text: str) -> tuple[str, str] | None:
    """Return ``(target, value)`` recovered from a fill step, if it reads like one."""
    text = (step_text or "").strip()
    match = _TYPE_INTO_PATTERN.search(text)
    if match:
        return match.group(2).strip(), match.group(1).strip()
    for pattern in _FILL_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip(), match.group(2).strip()
    return None


def parse_select_step(step_text: str) -> tuple[str, str] | None:
    """Return ``(target, option_label)`` recovered from a select step."""
    text = (step_text or "").strip()
    for pattern in _SELECT_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(2).strip(), match.group(1).strip()
    return None


def step_category(step_text: str) -> str | None:
    lowered = (step_text or "").strip().lower()
    for tool_name, keywords in _STEP_CATEGORIES:
        if any(keyword in lowered for keyword in keywords):
            return tool_name
    return None


def relative_from_absolute(url: str, base_url: str | None) -> str | None:
    if not base_url:
        return None
    target = urlsplit(url)
    base = urlsplit(base_url)
    if not target.scheme or not target.netloc or not base.scheme or not base.netloc:
        return None
    if (target.scheme.lower(), target.netloc.lower()) != (base.scheme.lower(), base.netloc.lower()):
        return None
    relative = target.path or "/"
    if target.query:
        relative += f"?{target.query}"
    if target.fragment:
        relative += f"#{target.fragment}"
    return relative


def _is_absolute_url(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def find_matching_record(step: SpecStep, records: Sequence[ActionRecord]) -> ActionRecord | None:
    indexed = [record for record in records if record.step_index == step.index and record.outcome.ok]
    for record in indexed:
        if record.tool_name not in RUNTIME_ONLY_TOOLS:
            return record
    if indexed:
        return indexed[0]

    category = step_category(step.text)
    if category is None:
        return None
    for record in records:
        if record.tool_name == category and record.outcome.ok and record.step_index in (None, step.index):
            return record
    return None


def constant_name(var_name: str) -> str:
    return var_name if var_name[:1].isalpha() or var_name[:1] == "_" else f"VAR_{var_name}"


def constant_collisions(var_names: Iterable[str]) -> list[str]:
    owners: dict[str, list[str]] = {}
    for name in sorted(set(var_names)):
        owners.setdefault(constant_name(name), []).append(name)
    return [
        f"Template variables {' and '.join(names)} all map to constant {constant}"
        for constant, names in sorted(owners.items())
        if len(names) > 1
    ]


def redact_step_text(
    step_text: str,
    base_url: str,
    login_base_url: str | None = None,
    step_vars: StepVars | None = None,
    env_prefix: str = DEFAULT_CONFIG.env_prefix,
) -> str:
    if step_vars is not None and step_vars.names:
        return replace_template_vars(step_vars.raw_text, env_prefix)

    target = parse_navigate_step(step_text)
    if target is not None and _is_absolute_url(target):
        for base in (base_url, login_base_url):
            relative = relative_from_absolute(target, base)
            if relative is not None:
                return f"Navigate to {relative}"
    return step_text


class _StepCodeBuilder:
    def __init__(
        self,
        step: SpecStep,
        records: Sequence[ActionRecord],
        context: _ExportContext,
        step_vars: StepVars | None,
    ) -> None:
        self.step = step
        self.records = records
        self.context = context
        self.step_vars = step_vars
        self.result = StepCode()

    def build(self) -> StepCode:
        if self.step.kind == "assertion":
            self._build_assertion_step()
            return self.result

        record = find_matching_record(self.step, self.records)
        if record is None:
            self._fail(f"no recorded action for step {self.step.index}")
            return self.result
        self._emit_record(record, 1)
        return self.result

    def _fail(self, reason: str) -> None:
        self.result.lines.append(f"# TODO: Step {self.step.index} - {reason}")
        if self.result.error is None:
            self.result.error = f"Step {self.step.index}: {reason}"

    def _emit(self, line: str) -> None:
        self.result.lines.append(line)

    def _build_assertion_step(self) -> None:
        assertion_records = [
            record
            for record in self.records
            if record.step_index == self.step.index and record.outcome.ok and record.tool_name in ASSERTION_TOOLS
        ]
        if not assertion_records:
            self._fail(f"assertion step {self.step.index} missing assertion record")
            return
        for position, record in enumerate(assertion_records, start=1):
            self._emit_record(record, position)

    def _emit_record(self, record: ActionRecord, position: int) -> None:
        tool_name = record.tool_name
        if tool_name in RUNTIME_ONLY_TOOLS:
            return
        if tool_name == "navigate":
            self._emit_navigate(record)
        elif tool_name == "click":
            locator_code = self._chosen_code(record)
            if locator_code:
                self._emit(f"{locator_code}.click()")
        elif tool_name == "fill":
            self._emit_fill(record)
        elif tool_name == "select_option":
            self._emit_select(record)
        elif tool_name == "assertTextPresent":
            self._emit_text_assertion(record, position)
        elif tool_name == "assertElementVisible":
            self._emit_element_assertion(record, position)
        else:
            self._fail(f"unsupported tool {tool_name!r}")

    def _chosen_code(self, record: ActionRecord) -> str | None:
        if not has_valid_chosen_locator(record):
            self._fail(f"{record.tool_name} missing valid chosenLocator")
            return None
        return record.element.chosen_locator.code  # type: ignore[union-attr]

    def _emit_navigate(self, record: ActionRecord) -> None:
        raw_url = record.tool_input.get("url")
        url = raw_url if isinstance(raw_url, str) and raw_url.strip() else parse_navigate_step(self.step.text)
        if not url:
            self._fail("navigate record has no url")
            return

        templated = self._templated_navigate_target()
        expression = templated if templated is not None else self._url_expression(url.strip())
        self._emit(f"page.goto({expression})")

    def _templated_navigate_target(self) -> str | None:
        if self.step_vars is None:
            return None
        raw_target = parse_navigate_step(self.step_vars.raw_text)
        if raw_target is None or not TEMPLATE_VAR_PATTERN.search(raw_target):
            return None

        parts: list[str] = []
        cursor = 0
        for match in TEMPLATE_VAR_PATTERN.finditer(raw_target):
            if match.start() > cursor:
                parts.append(py_literal(raw_target[cursor : match.start()]))
            parts.append(self._use_var(match.group(1).strip()))
            cursor = match.end()
        if cursor < len(raw_target):
            parts.append(py_literal(raw_target[cursor:]))

        expression = " + ".join(parts)
        if raw_target.startswith("/"):
            return f"urljoin({BASE_URL_CONSTANT}, {expression})"
        return expression

    def _url_expression(self, url: str) -> str:
        if not _is_absolute_url(url):
            return f"urljoin({BASE_URL_CONSTANT}, {py_literal(url)})"

        relative = relative_from_absolute(url, self.context.base_url)
        if relative is not None:
            return f"urljoin({BASE_URL_CONSTANT}, {py_literal(relative)})"

        relative = relative_from_absolute(url, self.context.login_base_url)
        if relative is not None:
            self.result.needs_login_base_url = True
            return f"urljoin({LOGIN_BASE_URL_CONSTANT}, {py_literal(relative)})"
        return py_literal(url)

    def _use_var(self, var_name: str) -> str:
        if var_name == BASE_URL_CONSTANT:
            return BASE_URL_CONSTANT
        if var_name == LOGIN_BASE_URL_CONSTANT:
            self.result.needs_login_base_url = True
            return LOGIN_BASE_URL_CONSTANT
        self.result.env_vars.add(var_name)
        return constant_name(var_name)

    def _emit_fill(self, record: ActionRecord) -> None:
        locator_code = self._chosen_code(record)
        if not locator_code:
            return
        value = self._fill_value_expression(record)
        if value is None:
            self._fail("fill value cannot be recovered from the trace or step text")
            return
        self._emit(f"{locator_code}.fill({value})")

    def _fill_value_expression(self, record: ActionRecord) -> str | None:
        fill_value = record.tool_input.get("fillValue")
        if isinstance(fill_value, dict):
            if fill_value.get("kind") == "template_var" and fill_value.get("name"):
                return self._use_var(str(fill_value["name"]))
        if self.step_vars is not None and self.step_vars.names:
            return self._use_var(self.step_vars.names[0])
        if isinstance(fill_value, dict) and fill_value.get("kind") == "literal":
            literal = fill_value.get("value")
            if isinstance(literal, str):
                return py_literal(literal)
        for key in ("text", "value"):
            raw = record.tool_input.get(key)
            if isinstance(raw, str):
                return py_literal(raw)
        parsed = parse_fill_step(self.step.text)
        if parsed is not None:
            return py_literal(parsed[1])
        return None

    def _emit_select(self, record: ActionRecord) -> None:
        locator_code = self._chosen_code(record)
        if not locator_code:
            return
        label = record.tool_input.get("label")
        value = record.tool_input.get("value")
        if isinstance(label, str) and label:
            self._emit(f"{locator_code}.select_option(label={py_literal(label)})")
            return
        if isinstance(value, str) and value:
            self._emit(f"{locator_code}.select_option({py_literal(value)})")
            return
        parsed = parse_select_step(self.step.text)
        if parsed is None:
            self._fail("select_option has no option label")
            return
        self._emit(f"{locator_code}.select_option(label={py_literal(parsed[1])})")

    def _emit_text_assertion(self, record: ActionRecord, position: int) -> None:
        raw_text = record.tool_input.get("text")
        text = raw_text.strip() if isinstance(raw_text, str) else ""
        if not text:
            self._fail(f"assertion step {self.step.index} missing text in trace")
            return

        visible_nth = record.tool_input.get("visibleNth")
        if isinstance(visible_nth, int) and not isinstance(visible_nth, bool) and visible_nth >= 0:
            variable = f"locator{self.step.index}_{position}"
            self._emit(f"{variable} = page.get_by_text({py_literal(text)})")
            self._emit(f"expect({variable}.nth({visible_nth})).to_be_visible()")
            return
        self._emit(f"expect(page.get_by_text({py_literal(text)}).first).to_be_visible()")

    def _emit_element_assertion(self, record: ActionRecord, position: int) -> None:
        locator_code = self._chosen_code(record)
        if not locator_code:
            return
        variable = f"locator{self.step.index}_{position}"
        self._emit(f"{variable} = {locator_code}")
        self._emit(f"expect({variable}).to_have_count(1)")
        self._emit(f"expect({variable}).to_be_visible()")


def generate_step_code(
    step: SpecStep,
    records: Sequence[ActionRecord],
    base_url: str,
    login_base_url: str | None = None,
    step_vars: StepVars | None = None,
) -> StepCode:
    context = _ExportContext(base_url=base_url, login_base_url=login_base_url)
    return _StepCodeBuilder(step, records, context, step_vars).build()


def spec_slug(cwd: str | Path, spec_path: str) -> str:
    relative = to_safe_relative_path(cwd, Path(cwd) / spec_path)
    stem = re.sub(r"\.md$", "", relative, flags=re.IGNORECASE)
    slug = _SLUG_PATTERN.sub("_", stem.lower()).strip("_")
    return slug or "spec"


def get_export_path(cwd: str | Path, spec_path: str, config: ReplayConfig | None = None) -> Path:
    export_dir = (config or DEFAULT_CONFIG).export_dir
    return Path(cwd) / export_dir / f"test_{spec_slug(cwd, spec_path)}.py"


def _export_source(cwd: str | Path, spec_path: str) -> str:
    return normalize_space(to_safe_relative_path(cwd, Path(cwd) / spec_path))


def _existing_export_source(export_path: Path) -> str | None:
    try:
        with export_path.open("r", encoding="utf-8") as handle:
            first_line = handle.readline().rstrip("\n")
    except (OSError, UnicodeDecodeError):
        return None
    match = _HEADER_PATTERN.match(first_line)
    return match.group(1) if match else None


def get_relative_export_path(cwd: str | Path, spec_path: str, config: ReplayConfig | None = None) -> str:
    return to_safe_relative_path(cwd, get_export_path(cwd, spec_path, config))


def generate_test_file_content(
    cwd: str | Path,
    spec_path: str,
    spec: StructuredSpec,
    records: Sequence[ActionRecord],
    base_url: str,
    login_base_url: str | None = None,
    raw_spec_content: str | None = None,
    env_prefix: str = DEFAULT_CONFIG.env_prefix,
) -> tuple[str, list[str]]:
    step_vars = parse_raw_spec_vars(raw_spec_content) if raw_spec_content else {}
    errors: list[str] = []
    env_vars: set[str] = set()
    needs_login_base_url = False
    body: list[str] = []

    for step in spec.steps:
        info = step_vars.get(step.index)
        step_code = generate_step_code(step, records, base_url, login_base_url, info)
        if step_code.error:
            errors.append(step_code.error)
        env_vars.update(step_code.env_vars)
        needs_login_base_url = needs_login_base_url or step_code.needs_login_base_url

        comment = normalize_space(redact_step_text(step.text, base_url, login_base_url, info, env_prefix), limit=240)
        if body:
            body.append("")
        body.append(f"# Step {step.index}: {comment}")
        body.extend(step_code.lines)

    errors.extend(constant_collisions(env_vars))

    if not any(line and not line.startswith("#") for line in body):
        body.append("pass")

    slug = spec_slug(cwd, spec_path)
    header_source = _export_source(cwd, spec_path)
    lines = [
        f"# Generated by replaykit from {header_source}. Re-export instead of editing by hand.",
        "import os",
    ]
    if any("urljoin(" in line for line in body):
        lines.append("from urllib.parse import urljoin")
    lines.extend(
        [
            "",
            "from playwright.sync_api import Page, expect",
            "",
            "",
            "def _require_env(name: str) -> str:",
            "    value = os.environ.get(name)",
            "    if not value:",
            '        raise RuntimeError(f"Missing required environment variable: {name}")',
            "    return value",
            "",
            "",
            f"{BASE_URL_CONSTANT} = _require_env({py_literal(env_prefix + 'BASE_URL')})",
        ]
    )
    if needs_login_base_url:
        lines.append(f"{LOGIN_BASE_URL_CONSTANT} = _require_env({py_literal(env_prefix + 'LOGIN_BASE_URL')})")
    for var_name in sorted(env_vars):
        lines.append(f"{constant_name(var_name)} = _require_env({py_literal(env_prefix + var_name)})")
    lines.extend(["", "", f"def test_{slug}(page: Page) -> None:"])
    lines.extend(f"    {line}" if line else "" for line in body)
    return "\n".join(lines) + "\n", errors


def _write_atomic(target_file: Path, content: str) -> tuple[bool, str]:
    temp_path: Path | None = None
    try:
        target_file.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{target_file.name}.", suffix=".tmp", dir=str(target_file.parent))
        temp_path = Path(temp_name)
        with os.fdopen(fd, "w", encoding="utf-8") as temp_file:
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        temp_path.replace(target_file)
    except OSError as exc:
        if temp_path and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        return False, f"Failed to write export file: {exc}"
    return True, "ok"


def _describe_missing(record: ActionRecord) -> str:
    step_info = f"step {record.step_index}" if record.step_index is not None else "unknown step"
    return f"{record.tool_name} at {step_info}"


def export_playwright_test(
    cwd: str | Path,
    run_id: str,
    spec_path: str,
    spec: StructuredSpec,
    base_url: str,
    login_base_url: str | None = None,
    raw_spec_content: str | None = None,
    config: ReplayConfig | None = None,
) -> ExportResult:
    """Write a pytest-playwright module replaying ``spec_path`` from the run's trace.

    Any gap (no records, a missing locator, a step without usable evidence)
    fails the whole export and leaves no file behind.
    """
    settings = config or DEFAULT_CONFIG
    try:
        records = get_spec_action_records(cwd, run_id, spec_path, settings.trace_root)
    except (OSError, UnicodeDecodeError) as exc:
        return _failed(ExportResult.failure(f"Failed to read trace file: {exc}"), spec_path)

    if not records:
        return _failed(ExportResult.failure("Export failed: No IR records found for spec"), spec_path)

    missing = get_missing_locator_actions(records)
    if missing:
        return _failed(
            ExportResult.failure(
                f"Export failed: {len(missing)} action(s) missing valid chosenLocator",
                missing_locators=tuple(_describe_missing(record) for record in missing),
            ),
            spec_path,
        )

    content, errors = generate_test_file_content(
        cwd,
        spec_path,
        spec,
        records,
        base_url,
        login_base_url=login_base_url,
        raw_spec_content=raw_spec_content,
        env_prefix=settings.env_prefix,
    )
    if errors:
        return _failed(ExportResult.failure(f"Export failed: {'; '.join(errors)}"), spec_path)

    export_path = get_export_path(cwd, spec_path, settings)
    owner = _existing_export_source(export_path)
    if owner is not None and owner != _export_source(cwd, spec_path):
        relative_path = to_safe_relative_path(cwd, export_path)
        return _failed(ExportResult.failure(f"Export failed: {relative_path} was generated from {owner}"), spec_path)
    ok, message = _write_atomic(export_path, content)
    if not ok:
        return _failed(ExportResult.failure(message), spec_path)

    relative_path = to_safe_relative_path(cwd, export_path)
    _logger.info("Exported %s to %s", spec_path, relative_path)
    return ExportResult.success(str(export_path), relative_path)


def _failed(result: ExportResult, spec_path: str) -> ExportResult:
    _logger.warning("Export of %s failed: %s", spec_path, result.reason)
    return result


def is_spec_exportable(
    cwd: str | Path,
    run_id: str,
    spec_path: str,
    config: ReplayConfig | None = None,
) -> tuple[bool, str | None]:
    settings = config or DEFAULT_CONFIG
    try:
        records = get_spec_action_records(cwd, run_id, spec_path, settings.trace_root)
    except (OSError, UnicodeDecodeError) as exc:
        return False, f"Failed to check exportability: {exc}"

    if not records:
        return False, "No IR records found for spec"
    missing = get_missing_locator_actions(records)
    if missing:
        return False, f"{len(missing)} action(s) missing valid chosenLocator"
    return True, None
