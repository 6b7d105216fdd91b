"""
End-to-end tests for the programmatic runner.

Runs the suite files under tests/fixtures through discovery, selection,
execution and reporting, checking the final RunStats of each scenario.
"""

import json

import pytest

from conductor import ArtifactCaptureConfig, RunConfig, SuiteNode, plan_tests, run_tests
from conductor.core.exceptions import ConfigurationError, DiscoveryError
from conductor.execution.driver import ExecutionDriver
from conductor.execution.models import ARTIFACTS_DIR_ENV, ARTIFACTS_ENV


def counts(stats):
    return {"tests": stats.tests, "passes": stats.passes, "failures": stats.failures, "pending": stats.pending}


class TestTags:
    """Tag selection scenarios."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tag,passes", [
        (None, 5),
        (["tag1"], 1),
        (["#tag1"], 1),
        (["!tag1"], 4),
        (["tag"], 1),
        (["!tag"], 4),
        (["tag1", "tag"], 2),
        (["tag1", "!tag1"], 0),
    ])
    async def test_tag_selection(self, suite_file, json_report, tag, passes):
        stats = await run_tests(globs=[suite_file("tag")], tag=tag, **json_report)
        assert stats.passes == passes
        assert stats.tests == passes
        assert stats.failures == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tag,passes", [(None, 3), (["role1"], 1), (["!role1"], 2)])
    async def test_roles(self, suite_file, json_report, tag, passes):
        stats = await run_tests(globs=[suite_file("role")], tag=tag, **json_report)
        assert stats.passes == passes


class TestFlagsAndFilter:
    """Feature flag and filter scenarios."""

    @pytest.mark.asyncio
    async def test_gated_test_excluded_without_flag(self, suite_file, json_report):
        stats = await run_tests(globs=[suite_file("flag")], **json_report)
        assert counts(stats) == {"tests": 1, "passes": 1, "failures": 0, "pending": 0}

    @pytest.mark.asyncio
    async def test_enabled_flag_runs_gated_test(self, suite_file, json_report):
        stats = await run_tests(globs=[suite_file("flag")], flags=["new-checkout"], **json_report)
        assert stats.passes == 2

    @pytest.mark.asyncio
    async def test_filter(self, suite_file, json_report):
        stats = await run_tests(globs=[suite_file("filter")], filter="#tag1", **json_report)
        assert stats.passes == 1

    @pytest.mark.asyncio
    async def test_invalid_filter_fails_before_running(self, suite_file, json_report):
        with pytest.raises(ConfigurationError):
            await run_tests(globs=[suite_file("filter")], filter="(", **json_report)


class TestRetries:
    """Retry scenarios."""

    @pytest.mark.asyncio
    async def test_retry_turns_failure_into_pass(self, suite_file, json_report):
        stats = await run_tests(globs=[suite_file("retries")], retries=1, **json_report)
        assert counts(stats) == {"tests": 1, "passes": 1, "failures": 0, "pending": 0}

    @pytest.mark.asyncio
    async def test_without_retries_test_fails(self, suite_file, json_report):
        stats = await run_tests(globs=[suite_file("retries")], retries=0, **json_report)
        assert counts(stats) == {"tests": 1, "passes": 0, "failures": 1, "pending": 0}

    @pytest.mark.asyncio
    async def test_each_run_reloads_suite_state(self, suite_file, json_report):
        first = await run_tests(globs=[suite_file("retries")], **json_report)
        second = await run_tests(globs=[suite_file("retries")], **json_report)
        assert first.failures == second.failures == 1


class TestReporterOutput:
    """Reporter scenarios."""

    @pytest.mark.asyncio
    async def test_xunit_output_file(self, suite_file, tmp_path):
        output = tmp_path / "xunit.xml"
        stats = await run_tests(
            globs=[suite_file("reporter")],
            reporter="xunit",
            reporter_options=f"output={output}",
        )
        assert stats.passes == 2
        content = output.read_text(encoding="utf-8")
        assert content.startswith("<testsuite ")
        assert "&lt;markup&gt; &amp; &#34;quotes&#34;" in content

    @pytest.mark.asyncio
    async def test_json_output_file(self, suite_file, tmp_path):
        output = tmp_path / "report.json"
        await run_tests(globs=[suite_file("reporter")], reporter="json", reporter_options={"output": str(output)})
        document = json.loads(output.read_text(encoding="utf-8"))
        assert document["stats"]["passes"] == 2

    @pytest.mark.asyncio
    async def test_unknown_reporter_fails_before_running(self, suite_file):
        ran = []
        root = SuiteNode("root")
        root.add_test("t", body=lambda: ran.append(True))
        with pytest.raises(ConfigurationError):
            await run_tests(suites=[root], reporter="nope")
        assert ran == []


class TestFailureArtifacts:
    """Failure artifact scenarios for failing, passing, skipped and hook-failing tests."""

    @pytest.fixture
    def armed(self, tmp_path, monkeypatch):
        output_dir = tmp_path / "artifacts"
        monkeypatch.setenv(ARTIFACTS_ENV, "true")
        monkeypatch.setenv(ARTIFACTS_DIR_ENV, str(output_dir))
        return output_dir

    async def run(self, suite_file, json_report, filter):
        return await run_tests(globs=[suite_file("failure_artifacts")], filter=filter, **json_report)

    @pytest.mark.asyncio
    async def test_failing_test_writes_bundle(self, suite_file, json_report, armed):
        stats = await self.run(suite_file, json_report, "it failure$")

        assert (stats.tests, stats.failures) == (1, 1)
        stem = "failure artifacts it failure"
        assert sorted(path.name for path in armed.iterdir()) == sorted([
            f"{stem}.png", f"{stem}.html", f"{stem}.browser.txt", f"{stem}.driver.txt",
        ])
        assert "Uncaught TypeError" in (armed / f"{stem}.browser.txt").read_text()

    @pytest.mark.asyncio
    async def test_passing_test_writes_nothing(self, suite_file, json_report, armed):
        stats = await self.run(suite_file, json_report, "it success$")

        assert stats.passes == 1
        assert not armed.exists() or list(armed.iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", [r"it it\.skip$", r"this\.skip$"])
    async def test_skipped_test_writes_nothing(self, suite_file, json_report, armed, title):
        stats = await self.run(suite_file, json_report, title)

        assert (stats.tests, stats.pending) == (1, 1)
        assert not armed.exists() or list(armed.iterdir()) == []

    @pytest.mark.asyncio
    async def test_before_each_failure_writes_bundle(self, suite_file, json_report, armed):
        stats = await self.run(suite_file, json_report, "beforeEach")

        assert (stats.tests, stats.failures, stats.hook_failures) == (0, 1, 1)
        stem = "failure artifacts beforeEach failure"
        assert sorted(path.name for path in armed.iterdir()) == sorted([
            f"{stem}.png", f"{stem}.html", f"{stem}.browser.txt", f"{stem}.driver.txt",
        ])

    @pytest.mark.asyncio
    async def test_unarmed_run_writes_nothing(self, suite_file, json_report, tmp_path):
        output_dir = tmp_path / "artifacts"
        config = RunConfig(
            globs=[suite_file("failure_artifacts")],
            artifacts=ArtifactCaptureConfig(enabled=False, output_dir=output_dir),
            **json_report,
        )
        stats = await run_tests(config)

        assert stats.failures == 2
        assert not output_dir.exists()

    @pytest.mark.asyncio
    async def test_explicit_session_provider(self, json_report, tmp_path, fake_session):
        root = SuiteNode("checkout")
        root.add_test("pays", body=lambda: 1 / 0)
        config = RunConfig(
            artifacts=ArtifactCaptureConfig(enabled=True, output_dir=tmp_path),
            **json_report,
        )

        stats = await run_tests(config, suites=[root], session_provider=lambda context: fake_session)

        assert stats.failures == 1
        assert (tmp_path / "checkout pays.png").exists()

    @pytest.mark.asyncio
    async def test_session_provider_error_does_not_abort_run(self, json_report, tmp_path):
        def closed_browser(context):
            raise RuntimeError("browser already closed")

        root = SuiteNode("checkout")
        root.add_test("pays", body=lambda: 1 / 0)
        root.add_test("refunds", body=lambda: None)
        config = RunConfig(
            artifacts=ArtifactCaptureConfig(enabled=True, output_dir=tmp_path / "artifacts"),
            **json_report,
        )

        stats = await run_tests(config, suites=[root], session_provider=closed_browser)

        assert counts(stats) == {"tests": 2, "passes": 1, "failures": 1, "pending": 0}
        assert not (tmp_path / "artifacts").exists()


class TestConfiguration:
    """Configuration handling at the runner boundary."""

    @pytest.mark.asyncio
    async def test_unmatched_glob_is_fatal(self, tmp_path):
        with pytest.raises(DiscoveryError):
            await run_tests(globs=[str(tmp_path / "nothing-*.py")])

    @pytest.mark.asyncio
    async def test_no_globs_and_no_suites(self):
        with pytest.raises(ConfigurationError):
            await run_tests()

    @pytest.mark.asyncio
    async def test_options_override_config(self, suite_file, json_report):
        config = RunConfig(globs=[suite_file("tag")], tag=["tag1"], **json_report)
        stats = await run_tests(config, tag=["!tag1"])
        assert stats.passes == 4

    def test_plan_tests(self, suite_file):
        plan = plan_tests(globs=[suite_file("tag")], tag=["!tag1"])
        assert len(plan.selected) == 4
        assert plan.total == 5

    def test_driver_run_ids_are_unique(self):
        config = RunConfig()
        assert ExecutionDriver(config).run_id != ExecutionDriver(config).run_id
