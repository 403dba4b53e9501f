"""
Testes do EvidenceCollector e da conversao bundle -> Evidence.
"""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from conftest import console_message, response

from qakit.browser_scripts import ACCESSIBILITY_TREE_JS, PERFORMANCE_METRICS_JS
from qakit.evidence import EvidenceCollector
from qakit.health import PageHealthScorer
from qakit.models import Evidence, FailureInfo, load_bundle
from qakit.models.health import PageHealthMetrics, PageHealthReport


@pytest.fixture
def observer(clock, page):
    scorer = PageHealthScorer(clock=clock)
    scorer.attach_to_page(page)
    return scorer


@pytest.fixture
def collector(tmp_path, observer):
    return EvidenceCollector(tmp_path, observer=observer)


FAILURE = FailureInfo(name="Login Flow", error="Timeout 30000ms exceeded")


class TestEvidenceId:

    def test_id_from_timestamp_and_name(self, collector):
        at = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)

        assert collector.generate_evidence_id(FAILURE, at) == "2024-01-02T03-04-05-678Z-login-flow"

    def test_name_is_sanitized(self, collector):
        failure = FailureInfo(name="Checkout / pay (EUR)", error="x")
        evidence_id = collector.generate_evidence_id(failure)

        assert evidence_id.endswith("-checkout---pay--eur-")
        assert "/" not in evidence_id

    @pytest.mark.asyncio
    async def test_same_id_gets_a_new_directory(self, collector, page, tmp_path, monkeypatch):
        """Mesmo milissegundo e mesmo nome sanitizado nao sobrescrevem o bundle anterior"""
        at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        generate = collector.generate_evidence_id
        monkeypatch.setattr(collector, "generate_evidence_id", lambda failure: generate(failure, at))

        first = await collector.collect(page, FailureInfo(name="Login Flow", error="first"))
        second = await collector.collect(page, FailureInfo(name="login-flow", error="second"))

        assert first.id == "2026-01-01T00-00-00-000Z-login-flow"
        assert second.id == "2026-01-01T00-00-00-000Z-login-flow-2"
        assert load_bundle(first.directory).error_message == "first"
        assert load_bundle(second.directory).error_message == "second"
        assert len(list(tmp_path.iterdir())) == 2


class TestCollect:

    @pytest.mark.asyncio
    async def test_full_bundle(self, collector, page, tmp_path):
        page.emit("console", console_message("TypeError: cart is null"))
        page.emit("response", response("http://app.test/api/cart", 500))

        bundle = await collector.collect(page, FAILURE)

        directory = tmp_path / bundle.id
        assert bundle.directory == str(directory)
        assert sorted(p.name for p in directory.iterdir()) == [
            "accessibility-tree.json",
            "console-errors.json",
            "dom-snapshot.html",
            "evidence.json",
            "failure-screenshot.png",
            "network-failures.json",
            "performance-metrics.json",
            "storage-state.json",
        ]
        assert len(bundle.captured_categories()) == 7
        assert bundle.url == "http://app.test/login"
        assert bundle.viewport == {"width": 1280, "height": 720}
        assert bundle.user_agent == "FakeBrowser/1.0"
        assert bundle.screenshot.type == "full-page"
        assert bundle.dom_snapshot.size == len("<!DOCTYPE html><html><body>ok</body></html>")

        console = json.loads((directory / "console-errors.json").read_text())
        assert console["count"] == 1
        assert console["errors"][0]["text"] == "TypeError: cart is null"

        manifest = json.loads((directory / "evidence.json").read_text())
        assert manifest["test_name"] == "Login Flow"
        assert manifest["error_message"] == "Timeout 30000ms exceeded"
        assert manifest["network_failures"]["failures"][0]["status"] == 500

    @pytest.mark.asyncio
    async def test_screenshot_failure_still_writes_manifest(self, collector, page):
        page.screenshot_error = RuntimeError("Target page, context or browser has been closed")

        bundle = await collector.collect(page, FAILURE)

        assert bundle.screenshot.captured is False
        assert "has been closed" in bundle.screenshot.error
        assert bundle.manifest_path.exists()
        assert "screenshot" not in bundle.captured_categories()
        assert "dom_snapshot" in bundle.captured_categories()

        loaded = load_bundle(bundle.directory)
        assert loaded.screenshot.captured is False
        assert loaded.dom_snapshot.captured is True

    @pytest.mark.asyncio
    async def test_script_failures_are_isolated(self, collector, page):
        page.scripts[PERFORMANCE_METRICS_JS] = RuntimeError("Execution context was destroyed")
        page.scripts[ACCESSIBILITY_TREE_JS] = RuntimeError("Execution context was destroyed")

        bundle = await collector.collect(page, FAILURE)

        assert bundle.performance_metrics.captured is False
        assert bundle.accessibility.captured is False
        assert bundle.storage_state.captured is True
        assert bundle.storage_state.local_storage == {"token": "abc"}

    @pytest.mark.asyncio
    async def test_hung_page_still_writes_manifest(self, tmp_path, page):
        """Renderer travado: cada chamada estoura o prazo e o manifesto sai mesmo assim"""
        page.hang = True
        collector = EvidenceCollector(tmp_path, capture_timeout_ms=20)

        bundle = await asyncio.wait_for(collector.collect(page, FAILURE), timeout=5)

        assert bundle.manifest_path.exists()
        assert bundle.user_agent == ""
        assert bundle.captured_categories() == ["console_errors", "network_failures"]
        for category in ("screenshot", "dom_snapshot", "performance_metrics", "storage_state", "accessibility"):
            record = getattr(bundle, category)
            assert record.captured is False
            assert "exceeded 20ms" in record.error

    @pytest.mark.asyncio
    async def test_without_observer_logs_are_empty(self, tmp_path, page):
        bundle = await EvidenceCollector(tmp_path).collect(page, FAILURE)

        assert bundle.console_errors.captured is True
        assert bundle.console_errors.count == 0
        assert bundle.network_failures.count == 0

    @pytest.mark.asyncio
    async def test_capture_error(self, collector, page, tmp_path):
        try:
            raise ValueError("unexpected state")
        except ValueError as e:
            record = await collector.capture_error(page, e)

        error_dir = tmp_path / record.id
        assert record.id.startswith("error-")
        assert record.screenshot == "error-screenshot.png"
        assert (error_dir / "error-screenshot.png").exists()

        data = json.loads((error_dir / "error-evidence.json").read_text())
        assert data["type"] == "UnexpectedError"
        assert data["message"] == "unexpected state"
        assert "ValueError" in data["stack"]
        assert data["url"] == "http://app.test/login"

    @pytest.mark.asyncio
    async def test_capture_error_with_unwritable_dir(self, tmp_path, page):
        blocked = tmp_path / "blocked"
        blocked.write_text("not a directory")
        collector = EvidenceCollector(blocked)

        record = await collector.capture_error(page, ValueError("unexpected state"))

        assert record.message == "unexpected state"
        assert record.screenshot is None
        assert blocked.is_file()

    @pytest.mark.asyncio
    async def test_capture_error_with_hung_page(self, tmp_path, page):
        page.hang = True
        collector = EvidenceCollector(tmp_path, capture_timeout_ms=20)

        record = await asyncio.wait_for(collector.capture_error(page, ValueError("boom")), timeout=5)

        assert record.screenshot is None
        assert (tmp_path / record.id / "error-evidence.json").exists()


class TestEvidenceFromBundle:

    @pytest.mark.asyncio
    async def test_conversion_uses_captured_categories(self, collector, page):
        page.emit("response", response("http://app.test/api/me", 401))
        page.screenshot_error = RuntimeError("closed")

        bundle = await collector.collect(page, FAILURE)
        evidence = Evidence.from_bundle(bundle)

        assert evidence.url == "http://app.test/login"
        assert evidence.error_message == "Timeout 30000ms exceeded"
        assert [f.status for f in evidence.network_failures] == [401]
        assert evidence.screenshot is None
        assert evidence.dom_snapshot == bundle.dom_snapshot.path
        assert evidence.performance_metrics.timing.first_contentful_paint == 800
        assert evidence.performance_metrics.memory.used_js_heap_size == 5_000_000

    @pytest.mark.asyncio
    async def test_health_report_fills_missing_fcp(self, collector, page):
        page.scripts[PERFORMANCE_METRICS_JS] = RuntimeError("gone")
        bundle = await collector.collect(page, FAILURE)
        report = PageHealthReport(
            score=80,
            url=page.url,
            timestamp="2024-01-01T00:00:00.000Z",
            metrics=PageHealthMetrics(first_contentful_paint=4200),
        )

        evidence = Evidence.from_bundle(bundle, health_report=report)

        assert evidence.performance_metrics.timing.first_contentful_paint == 4200
        assert evidence.performance_metrics.memory is None
