"""
Reporter bridge.

Resolves reporter names to classes and renders finished runs. Reporters write
to the ``output`` option when given, else to stdout.
"""

import json
import sys
from pathlib import Path
from typing import Dict, Mapping, Optional, Type, Union

from jinja2 import Environment

from ..core.exceptions import ConfigurationError, ReporterError
from ..core.logging_config import get_logger
from .models import CaseResult, RunReport


ReporterOptions = Union[str, Mapping[str, str], None]


def parse_reporter_options(options: ReporterOptions) -> Dict[str, str]:
    """
    Parse reporter options given as ``"output=path,k=v"`` or as a mapping.

    A bare key without ``=`` is set to ``"true"``.
    """
    if options is None:
        return {}
    if isinstance(options, Mapping):
        return {str(key): str(value) for key, value in options.items()}

    parsed = {}
    for item in options.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        parsed[key.strip()] = value.strip() if sep else "true"
    return parsed


class Reporter:
    """Base reporter; subclasses implement ``render``."""

    name = "base"

    def __init__(self, options: ReporterOptions = None):
        self.options = parse_reporter_options(options)
        self.logger = get_logger(__name__, reporter=self.name)

    @property
    def output(self) -> Optional[Path]:
        output = self.options.get("output")
        return Path(output) if output else None

    def render(self, report: RunReport) -> str:
        raise NotImplementedError

    def write(self, report: RunReport) -> Optional[Path]:
        """Render the report and write it out; returns the file written, if any."""
        try:
            content = self.render(report)
        except Exception as e:
            raise ReporterError(
                f"Failed to render {self.name} report: {e}",
                reporter=self.name,
            ) from e

        output = self.output
        if output is None:
            sys.stdout.write(content)
            sys.stdout.flush()
            return None

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ReporterError(
                f"Failed to write {self.name} report: {e}",
                reporter=self.name,
                output_path=str(output),
            ) from e

        self.logger.info(f"Report written: {output}")
        return output


XUNIT_TEMPLATE = """\
<testsuite name="{{ suite_name }}" tests="{{ report.cases|length }}" \
failures="{{ report.stats.failures }}" errors="0" \
skipped="{{ report.stats.pending }}" timestamp="{{ timestamp }}" \
time="{{ '%.3f'|format(report.stats.duration) }}">
{% for case in report.cases %}
{% if case.failed %}
<testcase classname="{{ case.classname }}" name="{{ case.name }}" time="{{ '%.3f'|format(case.duration) }}">\
<failure message="{{ case.error_message }}">{{ case.stack_trace or case.error_message }}</failure>\
</testcase>
{% elif case.skipped %}
<testcase classname="{{ case.classname }}" name="{{ case.name }}" time="{{ '%.3f'|format(case.duration) }}">\
<skipped/></testcase>
{% else %}
<testcase classname="{{ case.classname }}" name="{{ case.name }}" time="{{ '%.3f'|format(case.duration) }}"/>
{% endif %}
{% endfor %}
</testsuite>
"""


class XunitReporter(Reporter):
    """JUnit-compatible XML, one testcase per resolved test and hook failure."""

    name = "xunit"

    def __init__(self, options: ReporterOptions = None):
        super().__init__(options)
        self.jinja_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self.template = self.jinja_env.from_string(XUNIT_TEMPLATE)

    def render(self, report: RunReport) -> str:
        return self.template.render(
            report=report,
            suite_name=self.options.get("suiteName", "QA Conductor Tests"),
            timestamp=(report.stats.start or report.generated_at).strftime("%Y-%m-%dT%H:%M:%S"),
        )


class JsonReporter(Reporter):
    """``{stats, tests, failures}`` document."""

    name = "json"

    def render(self, report: RunReport) -> str:
        return json.dumps(report.to_dict(), indent=2, default=str) + "\n"


class SpecReporter(Reporter):
    """Indented, human-readable listing grouped by suite."""

    name = "spec"

    MARKS = {"passed": "✓", "failed": "✗", "skipped": "-"}

    def render(self, report: RunReport) -> str:
        lines = [""]
        current: list = []
        failure_numbers: Dict[int, int] = {}

        for case in report.cases:
            titles = case.suite_titles
            common = 0
            while common < min(len(current), len(titles)) and current[common] == titles[common]:
                common += 1
            for depth in range(common, len(titles)):
                lines.append("  " * (depth + 1) + titles[depth])
            current = titles

            indent = "  " * (len(titles) + 1)
            if case.failed:
                failure_numbers[id(case)] = len(failure_numbers) + 1
                lines.append(f"{indent}{failure_numbers[id(case)]}) {case.name}")
            else:
                suffix = f" ({case.duration * 1000:.0f}ms)" if case.passed else ""
                lines.append(f"{indent}{self.MARKS[case.status]} {case.name}{suffix}")

        stats = report.stats
        lines.extend([
            "",
            f"  {stats.passes} passing ({stats.duration:.2f}s)",
        ])
        if stats.pending:
            lines.append(f"  {stats.pending} pending")
        if stats.failures:
            lines.append(f"  {stats.failures} failing")

        for case in report.failures:
            lines.extend(["", self._describe_failure(failure_numbers[id(case)], case)])

        return "\n".join(lines) + "\n"

    def _describe_failure(self, number: int, case: CaseResult) -> str:
        text = f"  {number}) {case.full_title}:\n     {case.error_type}: {case.error_message}"
        if case.artifacts:
            text += "\n     artifacts: " + ", ".join(case.artifacts)
        return text


REPORTERS: Dict[str, Type[Reporter]] = {
    XunitReporter.name: XunitReporter,
    JsonReporter.name: JsonReporter,
    SpecReporter.name: SpecReporter,
}


def register_reporter(name: str, reporter_class: Type[Reporter]) -> None:
    REPORTERS[name] = reporter_class


def get_reporter(name: str, options: ReporterOptions = None) -> Reporter:
    """Instantiate a reporter by name; an unknown name is a configuration error."""
    reporter_class = REPORTERS.get(name)
    if reporter_class is None:
        raise ConfigurationError(
            f"Unknown reporter '{name}'. Available: {', '.join(sorted(REPORTERS))}",
            setting="reporter",
        )
    return reporter_class(options)
