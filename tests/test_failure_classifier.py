"""
Testes do FailureClassifier.

Cada cenario monta um Evidence com sintomas tipicos e verifica a
categoria vencedora, a confianca e os motivos.
"""

import pytest

from qakit.diagnosis import FailureClassifier
from qakit.models import (
    ClassificationType,
    ConsoleError,
    Evidence,
    NetworkFailure,
    PerformanceMetrics,
)
from qakit.models.evidence import MemoryUsage


def make_evidence(error_message=None, network_failures=(), console_errors=(), performance_metrics=None):
    return Evidence(
        url="http://app.test/checkout",
        timestamp="2024-01-01T00:00:00.000Z",
        error_message=error_message,
        network_failures=tuple(network_failures),
        console_errors=tuple(console_errors),
        performance_metrics=performance_metrics,
    )


@pytest.fixture
def classifier():
    return FailureClassifier()


class TestTestFlake:
    """Falhas do lado do teste"""

    def test_playwright_timeout_is_flake(self, classifier):
        result = classifier.classify(make_evidence("Timeout 30000ms exceeded waiting for selector"))

        assert result.type == ClassificationType.TEST_FLAKE
        assert result.confidence == pytest.approx(0.6)
        assert result.reasons == ["Contains timeout error"]
        assert result.fixable is True
        assert "Increase timeout values for slow operations" in result.recommendation
        assert "Add explicit waits for element visibility" in result.recommendation

    def test_signals_accumulate_and_clamp(self, classifier):
        result = classifier.classify(make_evidence(
            "Timed out: element not found, element is not visible",
            network_failures=[NetworkFailure(url="http://app.test/api", failure_reason="Request timeout after 30s")],
            console_errors=[ConsoleError(type="warning", text="transition interrupted")],
        ))

        assert result.type == ClassificationType.TEST_FLAKE
        assert result.confidence == pytest.approx(0.95)
        assert len(result.reasons) == 5

    def test_timeout_inside_other_words_is_ignored(self, classifier):
        """'runtime output' nao e timeout"""
        result = classifier.classify(make_evidence("AssertionError: expected runtime output to equal 'ok'"))
        flake = result.candidate(ClassificationType.TEST_FLAKE)

        assert flake.confidence == 0
        assert "Contains timeout error" not in flake.reasons

    def test_chromium_timed_out_request(self, classifier):
        flake = classifier.classify(make_evidence(
            "page.click: Target closed",
            network_failures=[NetworkFailure(url="http://app.test/api", failure_reason="net::ERR_TIMED_OUT")],
        )).candidate(ClassificationType.TEST_FLAKE)

        assert flake.confidence == pytest.approx(0.3)
        assert flake.reasons == ["Network timeout detected"]

    def test_no_signal_is_not_fixable(self, classifier):
        flake = classifier.classify(make_evidence("something odd")).candidate(ClassificationType.TEST_FLAKE)

        assert flake.confidence == 0
        assert flake.reasons == []
        assert flake.fixable is False


class TestAppRegression:
    """Bugs da aplicacao"""

    def test_js_error_with_server_error(self, classifier):
        result = classifier.classify(make_evidence(
            "expect(locator).toBeVisible() failed",
            network_failures=[NetworkFailure(url="http://app.test/api/cart", status=500)],
            console_errors=[ConsoleError(type="error", text="TypeError: Cannot read property 'x' of undefined")],
        ))

        assert result.type == ClassificationType.APP_REGRESSION
        assert result.confidence == pytest.approx(0.95)
        assert "1 JavaScript errors detected" in result.reasons
        assert "1 server errors (5xx)" in result.reasons
        assert result.fixable is True
        assert "Check server logs for backend errors" in result.recommendation

    def test_plain_server_error(self, classifier):
        result = classifier.classify(make_evidence(
            network_failures=[NetworkFailure(url="http://app.test/api/cart", status=500)],
        ))

        assert result.type == ClassificationType.APP_REGRESSION
        assert result.confidence == pytest.approx(0.8)
        assert result.reasons == ["1 server errors (5xx)"]

    def test_server_error_without_obvious_fix(self, classifier):
        result = classifier.classify(make_evidence(
            network_failures=[NetworkFailure(url="http://app.test/api/cart", status=503)],
        ))

        assert result.type == ClassificationType.APP_REGRESSION
        assert result.confidence == pytest.approx(0.8)
        assert result.fixable is False
        assert result.candidate(ClassificationType.DATA_PROBLEM).confidence == pytest.approx(0.5)

    def test_framework_error(self, classifier):
        app = classifier.classify(make_evidence(
            console_errors=[ConsoleError(type="error", text="Uncaught Error in React component tree")],
        )).candidate(ClassificationType.APP_REGRESSION)

        assert app.confidence == pytest.approx(0.5)
        assert app.reasons == ["Frontend framework error detected"]


class TestEnvironmentIssue:
    """Problemas de infraestrutura"""

    def test_connection_refused(self, classifier):
        result = classifier.classify(make_evidence(
            network_failures=[NetworkFailure(url="http://localhost:3000/", failure_reason="connect ECONNREFUSED 127.0.0.1:3000")],
        ))

        assert result.type == ClassificationType.ENVIRONMENT_ISSUE
        assert result.confidence == pytest.approx(0.9)
        assert result.reasons == ["Connection refused - service may be down"]
        assert result.fixable is False
        assert "Verify the application server is running" in result.recommendation

    def test_chromium_error_in_message(self, classifier):
        result = classifier.classify(make_evidence("page.goto: net::ERR_NAME_NOT_RESOLVED at http://nowhere.test"))

        assert result.type == ClassificationType.ENVIRONMENT_ISSUE
        assert result.reasons == ["DNS resolution failed"]

    def test_closed_browser_and_heap(self, classifier):
        result = classifier.classify(make_evidence(
            "Target closed: Browser has been closed",
            performance_metrics=PerformanceMetrics(memory=MemoryUsage(used_js_heap_size=150_000_000)),
        ))

        assert result.type == ClassificationType.ENVIRONMENT_ISSUE
        assert result.confidence == pytest.approx(0.95)
        assert "High memory usage detected" in result.reasons


class TestDataProblem:
    """Problemas de dados de teste"""

    def test_unauthorized_beats_client_error(self, classifier):
        result = classifier.classify(make_evidence(
            network_failures=[NetworkFailure(url="http://app.test/api/me", status=401)],
        ))

        assert result.type == ClassificationType.DATA_PROBLEM
        assert result.confidence == pytest.approx(0.7)
        assert result.reasons == ["Authentication failure detected"]
        assert result.candidate(ClassificationType.APP_REGRESSION).confidence == pytest.approx(0.6)
        assert "Verify test credentials are correct" in result.recommendation

    def test_validation_error(self, classifier):
        data = classifier.classify(make_evidence(
            network_failures=[NetworkFailure(url="http://app.test/api/orders", status=422)],
        )).candidate(ClassificationType.DATA_PROBLEM)

        assert data.confidence == pytest.approx(0.4)
        assert data.reasons == ["Validation error - data format issue"]


class TestSelection:
    """Escolha do vencedor"""

    def test_empty_evidence_defaults_to_flake(self, classifier):
        result = classifier.classify(make_evidence())

        assert result.type == ClassificationType.TEST_FLAKE
        assert result.confidence == 0
        assert len(result.all_classifications) == 4

    def test_tie_goes_to_earlier_category(self, classifier):
        # AppRegression (4xx) e DataProblem (not found + 404) empatam em 0.6
        result = classifier.classify(make_evidence(
            "Resource not found",
            network_failures=[NetworkFailure(url="http://app.test/api/users/7", status=404)],
        ))

        assert result.candidate(ClassificationType.DATA_PROBLEM).confidence == pytest.approx(0.6)
        assert result.type == ClassificationType.APP_REGRESSION
        assert result.confidence == pytest.approx(0.6)
        # 0.6 nao passa de 0.8, mesmo com 404 em /api/
        assert result.fixable is False

    def test_all_candidates_in_fixed_order(self, classifier):
        result = classifier.classify(make_evidence("Timeout"))

        assert [c.type for c in result.all_classifications] == [
            ClassificationType.TEST_FLAKE,
            ClassificationType.APP_REGRESSION,
            ClassificationType.ENVIRONMENT_ISSUE,
            ClassificationType.DATA_PROBLEM,
        ]
        assert all(0 <= c.confidence <= 0.95 for c in result.all_classifications)

    def test_to_dict_flattens_best(self, classifier):
        data = classifier.classify(make_evidence("Timeout")).to_dict()

        assert data["type"] == "TestFlake"
        assert len(data["all_classifications"]) == 4
        assert data["analysis_timestamp"].endswith("Z")
