"""
Fixtures compartilhadas: pagina falsa, relogio controlavel.

Nenhum teste abre um browser de verdade.
"""

import asyncio
import logging
from types import SimpleNamespace

import pytest

from qakit.browser_scripts import (
    ACCESSIBILITY_ISSUES_JS,
    ACCESSIBILITY_TREE_JS,
    DOM_SNAPSHOT_JS,
    PAGE_TIMINGS_JS,
    PERFORMANCE_METRICS_JS,
    STORAGE_STATE_JS,
    USER_AGENT_JS,
)
from qakit.utils import configure_logging


class FakeClock:
    """Relogio manual: avanca apenas quando o teste pede."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePage:
    """
    Pagina minima no formato da Page do Playwright.

    evaluate() responde pelo script recebido; um valor Exception em
    `scripts` e levantado em vez de retornado. Com `hang` ligado,
    evaluate() e screenshot() nunca respondem (renderer travado).
    """

    def __init__(self, url: str = "http://app.test/login"):
        self.url = url
        self.viewport_size = {"width": 1280, "height": 720}
        self.handlers: dict[str, list] = {}
        self.screenshot_error = None
        self.hang = False
        self.screenshots: list[str] = []
        self.scripts = {
            USER_AGENT_JS: "FakeBrowser/1.0",
            PAGE_TIMINGS_JS: {"first_contentful_paint": 800, "dom_content_loaded": 120},
            ACCESSIBILITY_ISSUES_JS: [],
            DOM_SNAPSHOT_JS: "<!DOCTYPE html><html><body>ok</body></html>",
            PERFORMANCE_METRICS_JS: {
                "navigation": {"dom_content_loaded": 120, "load_complete": 40},
                "paint": [{"name": "first-contentful-paint", "start_time": 800}],
                "resources": {"total": 3, "by_type": {"script": 2, "img": 1}, "slow_requests": []},
                "memory": {"used_js_heap_size": 5_000_000, "total_js_heap_size": 8_000_000},
                "timestamp": 1700000000000,
            },
            STORAGE_STATE_JS: {"local_storage": {"token": "abc"}, "session_storage": {}, "cookies": "sid=1"},
            ACCESSIBILITY_TREE_JS: {
                "interactive_elements": [{"tag": "button", "text": "Login"}],
                "headings": [{"level": 1, "text": "Welcome"}],
                "title": "Login",
                "lang": "en",
                "has_skip_link": False,
            },
        }

    def on(self, event: str, handler) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload) -> None:
        for handler in self.handlers.get(event, []):
            handler(payload)

    async def evaluate(self, script: str):
        if self.hang:
            await asyncio.Event().wait()
        value = self.scripts.get(script)
        if isinstance(value, Exception):
            raise value
        return value

    async def screenshot(self, path: str, full_page: bool = False, timeout=None) -> None:
        if self.hang:
            await asyncio.Event().wait()
        if self.screenshot_error:
            raise self.screenshot_error
        with open(path, "wb") as f:
            f.write(b"\x89PNG fake")
        self.screenshots.append(path)


def console_message(text: str, type: str = "error", location=None):
    return SimpleNamespace(type=type, text=text, location=location)


def response(url: str, status: int):
    return SimpleNamespace(url=url, status=status)


def failed_request(url: str, failure=None):
    return SimpleNamespace(url=url, failure=failure)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def page():
    return FakePage()


@pytest.fixture(autouse=True, scope="session")
def _logging_to_stderr():
    # Mantem stdout limpo para os testes que leem a saida do CLI
    configure_logging(logging.DEBUG, force=True)
