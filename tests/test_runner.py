"""
Testes do SafetyNet (guard + coletor + scorer + classificador).
"""

import pytest

from conftest import console_message, response

from qakit import ActionOutcome, CircuitOpenError, OperationTimeoutError, QAKitConfig, SafetyNet
from qakit.guard import ResourceGuard
from qakit.models import ClassificationType, ResourceLimits


@pytest.fixture
def guard(clock):
    guard = ResourceGuard(clock=clock, memory_probe=lambda: 100, on_shutdown=lambda reason, code: None)

    async def no_sleep(seconds):
        pass

    guard._sleep = no_sleep
    return guard


@pytest.fixture
def net(tmp_path, guard, page):
    net = SafetyNet(config=QAKitConfig(evidence_dir=tmp_path), guard=guard)
    net.attach(page)
    return net


def test_collector_uses_guard_capture_timeout(tmp_path):
    guard = ResourceGuard(ResourceLimits(screenshot_timeout_ms=1234), memory_probe=lambda: 100)
    net = SafetyNet(config=QAKitConfig(evidence_dir=tmp_path), guard=guard)

    assert net.collector.capture_timeout_ms == 1234


class TestRun:

    @pytest.mark.asyncio
    async def test_success(self, net, page):
        async def action():
            return "clicked"

        outcome = await net.run(page, "click login", action)

        assert isinstance(outcome, ActionOutcome)
        assert outcome.succeeded is True
        assert outcome.result == "clicked"
        assert outcome.bundle is None
        assert net.guard.stats.tests_run == 1

    @pytest.mark.asyncio
    async def test_retry_then_success(self, net, page):
        calls = []

        async def action():
            calls.append(1)
            if len(calls) < 2:
                raise RuntimeError("detached")
            return "ok"

        outcome = await net.run(page, "click", action)

        assert outcome.succeeded is True
        assert len(calls) == 2
        assert net.guard.stats.retries_used == 1

    @pytest.mark.asyncio
    async def test_failure_is_diagnosed(self, net, page, tmp_path):
        page.emit("console", console_message("TypeError: Cannot read properties of null (reading 'id')"))
        page.emit("response", response("http://app.test/api/cart", 500))

        async def action():
            raise RuntimeError("expect(locator).toHaveText() failed")

        outcome = await net.run(page, "checkout", action, max_retries=2)

        assert outcome.succeeded is False
        assert str(outcome.error) == "expect(locator).toHaveText() failed"
        assert outcome.bundle is not None
        assert outcome.bundle.manifest_path.exists()
        assert outcome.bundle.failure_type == "RuntimeError"
        assert outcome.classification.type == ClassificationType.APP_REGRESSION
        assert outcome.classification.fixable is True
        assert outcome.health.score == 75
        assert net.guard.circuit_breaker.failures == 1

        data = outcome.to_dict()
        assert data["evidence_dir"] == outcome.bundle.directory
        assert data["classification"]["type"] == "AppRegression"

    @pytest.mark.asyncio
    async def test_timeout_classified_as_flake(self, net, page):
        async def hang():
            raise OperationTimeoutError('Operation "wait" timed out after 5ms')

        outcome = await net.run(page, "wait", hang, timeout_ms=5, max_retries=1)

        assert outcome.succeeded is False
        assert outcome.classification.type == ClassificationType.TEST_FLAKE
        assert "Contains timeout error" in outcome.classification.reasons

    @pytest.mark.asyncio
    async def test_refuses_when_breaker_open(self, net, page):
        for _ in range(5):
            net.guard.record_circuit_breaker_failure()

        async def action():
            raise AssertionError("must not run")

        outcome = await net.run(page, "blocked", action)

        assert outcome.succeeded is False
        assert isinstance(outcome.error, CircuitOpenError)
        assert outcome.bundle is None
        assert net.guard.stats.tests_run == 0

    @pytest.mark.asyncio
    async def test_capture_unexpected(self, net, page, tmp_path):
        record = await net.capture_unexpected(page, RuntimeError("boom"))

        assert (tmp_path / record.id / "error-evidence.json").exists()

    @pytest.mark.asyncio
    async def test_context_manager_cleans_up(self, net):
        async with net:
            assert net.guard._monitor_task is not None

        assert net.guard._monitor_task is None
