"""
Unit tests for stats aggregation and reporters.

Tests counter reconciliation, reporter option parsing and the xunit, json
and spec renderings.
"""

import json
from pathlib import Path

import pytest

from conductor.core.exceptions import ConfigurationError, ReporterError, StatsMismatchError
from conductor.execution.models import FailureEvent, RunStats
from conductor.reporting import (
    CaseResult,
    JsonReporter,
    Reporter,
    SpecReporter,
    StatsAggregator,
    XunitReporter,
    get_reporter,
    parse_reporter_options,
    register_reporter,
)
from conductor.reporting.reporters import REPORTERS
from conductor.suite.models import HookKind, SuiteNode, TestStatus


class TestParseReporterOptions:
    """Test cases for reporter option parsing."""

    def test_string_options(self):
        assert parse_reporter_options("output=out/report.xml, suiteName=UI ,verbose") == {
            "output": "out/report.xml",
            "suiteName": "UI",
            "verbose": "true",
        }

    def test_value_may_contain_equals(self):
        assert parse_reporter_options("filter=a=b") == {"filter": "a=b"}

    def test_mapping_and_none(self):
        assert parse_reporter_options({"output": 1}) == {"output": "1"}
        assert parse_reporter_options(None) == {}
        assert parse_reporter_options("") == {}


class TestGetReporter:
    """Test cases for the reporter registry."""

    def test_known_reporters(self):
        assert isinstance(get_reporter("xunit"), XunitReporter)
        assert isinstance(get_reporter("json"), JsonReporter)
        assert get_reporter("spec", "output=x.txt").output == Path("x.txt")
        assert get_reporter("spec").output is None

    def test_unknown_reporter(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_reporter("tap")
        assert exc_info.value.setting == "reporter"

    def test_register_reporter(self, monkeypatch):
        monkeypatch.setitem(REPORTERS, "dots", SpecReporter)
        register_reporter("dots", JsonReporter)
        assert isinstance(get_reporter("dots"), JsonReporter)


@pytest.fixture
def finished_run():
    """An aggregator that saw a pass, a failure, a skip and a hook failure."""
    root = SuiteNode("checkout")
    cards = root.suite("cards")
    passed = cards.add_test("visa", body=lambda: None)
    failed = cards.add_test("amex <3>", body=lambda: None)
    skipped = root.add_test("later")
    hook = root.add_hook(HookKind.AFTER_ALL, lambda: None, name="logout")

    passed.status = TestStatus.PASSED
    passed.duration = 0.25
    failed.status = TestStatus.FAILED
    failed.error = AssertionError('expected "paid"')
    skipped.status = TestStatus.SKIPPED

    async def feed(aggregator):
        aggregator.start()
        await aggregator.on_test_end(passed)
        await aggregator.on_test_end(failed)
        await aggregator.on_failure(FailureEvent(
            identifier=failed.full_title, title=failed.name, error=failed.error,
            suite=cards, test=failed,
        ))
        await aggregator.on_test_end(skipped)
        await aggregator.on_failure(FailureEvent(
            identifier="checkout after all hook logout", title=hook.title,
            error=RuntimeError("session gone"), suite=root, hook=hook,
        ))
        return aggregator

    return feed


class TestStatsAggregator:
    """Test cases for StatsAggregator."""

    @pytest.mark.asyncio
    async def test_counts_and_reconciles(self, finished_run):
        aggregator = await finished_run(StatsAggregator())
        stats = aggregator.finish()

        assert (stats.tests, stats.passes, stats.failures, stats.pending) == (3, 1, 2, 1)
        assert stats.hook_failures == 1
        assert stats.is_reconciled
        assert not stats.ok
        assert stats.end is not None and stats.duration >= 0

    @pytest.mark.asyncio
    async def test_report_cases_in_execution_order(self, finished_run):
        aggregator = await finished_run(StatsAggregator())
        report = aggregator.build_report(aggregator.finish())

        assert [case.name for case in report.cases] == [
            "visa", "amex <3>", "later", '"after all" hook: logout',
        ]
        assert [case.status for case in report.cases] == ["passed", "failed", "skipped", "failed"]
        assert report.cases[3].hook
        assert report.cases[3].classname == "checkout"
        assert report.cases[1].classname == "checkout cards"
        assert report.cases[1].error_type == "AssertionError"
        assert len(report.tests) == 3
        assert len(report.failures) == 2

    def test_mismatch_raises(self):
        stats = RunStats(tests=2, passes=1)
        with pytest.raises(StatsMismatchError) as exc_info:
            stats.reconcile()
        assert exc_info.value.error_code == "STATS_MISMATCH"

    def test_hook_failures_do_not_count_as_tests(self):
        stats = RunStats(tests=0, failures=1, hook_failures=1)
        assert stats.reconcile() is stats


class TestReporters:
    """Test cases for report rendering."""

    @pytest.mark.asyncio
    async def test_xunit_document(self, finished_run):
        aggregator = await finished_run(StatsAggregator())
        xml = XunitReporter().render(aggregator.build_report(aggregator.finish()))

        assert xml.startswith("<testsuite ")
        assert 'tests="4"' in xml
        assert 'failures="2"' in xml
        assert 'errors="0"' in xml
        assert 'skipped="1"' in xml
        assert xml.count("<testcase ") == 4
        assert xml.count("<failure ") == 2
        assert xml.count("<skipped/>") == 1
        assert 'name="amex &lt;3&gt;"' in xml
        assert 'classname="checkout cards"' in xml
        assert xml.rstrip().endswith("</testsuite>")

    @pytest.mark.asyncio
    async def test_xunit_writes_output_file(self, finished_run, tmp_path):
        aggregator = await finished_run(StatsAggregator())
        output = tmp_path / "reports" / "xunit.xml"

        written = get_reporter("xunit", f"output={output}").write(
            aggregator.build_report(aggregator.finish())
        )

        assert written == output
        assert output.read_text(encoding="utf-8").startswith("<testsuite ")

    @pytest.mark.asyncio
    async def test_json_document(self, finished_run):
        aggregator = await finished_run(StatsAggregator(run_id="run-42"))
        document = json.loads(JsonReporter().render(aggregator.build_report(aggregator.finish())))

        assert document["run_id"] == "run-42"
        assert document["stats"]["tests"] == 3
        assert document["stats"]["hook_failures"] == 1
        assert [test["name"] for test in document["tests"]] == ["visa", "amex <3>", "later"]
        assert [f["full_title"] for f in document["failures"]] == [
            "checkout cards amex <3>",
            'checkout "after all" hook: logout',
        ]

    @pytest.mark.asyncio
    async def test_spec_listing(self, finished_run):
        aggregator = await finished_run(StatsAggregator())
        text = SpecReporter().render(aggregator.build_report(aggregator.finish()))

        assert "  checkout\n    cards\n      ✓ visa" in text
        assert "      1) amex <3>" in text
        assert "    - later" in text
        assert "1 passing" in text
        assert "1 pending" in text
        assert "2 failing" in text
        assert "AssertionError: expected \"paid\"" in text

    @pytest.mark.asyncio
    async def test_spec_writes_to_stdout(self, finished_run, capsys):
        aggregator = await finished_run(StatsAggregator())
        assert SpecReporter().write(aggregator.build_report(aggregator.finish())) is None
        assert "1 passing" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_render_error_becomes_reporter_error(self, finished_run):
        class Broken(Reporter):
            name = "broken"

            def render(self, report):
                raise ValueError("cannot render")

        aggregator = await finished_run(StatsAggregator())
        with pytest.raises(ReporterError) as exc_info:
            Broken().write(aggregator.build_report(aggregator.finish()))
        assert exc_info.value.reporter == "broken"

    def test_case_result_model(self):
        root = SuiteNode("s")
        test = root.add_test("t", body=lambda: None, tags=["smoke"])
        test.status = TestStatus.PASSED
        case = CaseResult.from_test(test)
        assert case.passed and not case.failed
        assert case.tags == ["smoke"]
        assert case.error_message is None
