#!/usr/bin/env python3
"""qakit CLI.

Command-line interface for the test safety net.

Usage:
    qakit classify PATH          # Classify a stored evidence bundle
    qakit doctor                 # Pre-flight checks for the host and app
    qakit health URL             # Score the health of a page
    qakit capture URL --name X   # Write an evidence bundle for a page
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys

from .config import QAKitConfig, get_config
from .diagnosis.failure_classifier import FailureClassifier
from .evidence.collector import EvidenceCollector
from .guard.resource_guard import InsufficientResourcesError, ResourceGuard
from .health.page_health import PageHealthScorer
from .models.evidence import Evidence, FailureInfo, load_bundle
from .utils import configure_logging, error_message, truncate_string

ENV_VARS = (
    "QAKIT_SUITE",
    "QAKIT_MAX_MEMORY_MB",
    "QAKIT_MAX_RETRIES",
    "QAKIT_MAX_HEALING_ATTEMPTS",
    "QAKIT_EVIDENCE_DIR",
    "QAKIT_LOG_LEVEL",
    "QAKIT_HEADLESS",
    "APP_BASE_URL",
)


def install_handlers(guard: ResourceGuard) -> None:
    """Route SIGINT/SIGTERM and unhandled loop errors into the guard."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, guard.handle_signal, sig.name)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass
    loop.set_exception_handler(guard.loop_exception_handler)


def cmd_classify(args):
    """Classify a stored evidence bundle."""
    try:
        bundle = load_bundle(args.path)
    except (OSError, json.JSONDecodeError, KeyError) as e:
        print(f"Error: cannot load bundle from {args.path}: {error_message(e)}")
        sys.exit(1)

    result = FailureClassifier().classify(Evidence.from_bundle(bundle))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    print("=" * 50)
    print(f"Failure: {bundle.test_name}")
    print("=" * 50)
    print(f"  Error:       {truncate_string(bundle.error_message or '-', 80)}")
    print(f"  URL:         {bundle.url or '-'}")
    print(f"  Type:        {result.type.value}")
    print(f"  Confidence:  {result.confidence * 100:.1f}%")
    print(f"  Fixable:     {result.fixable}")
    print()
    if result.reasons:
        print("Reasons:")
        for reason in result.reasons:
            print(f"  - {reason}")
        print()
    print("Recommendations:")
    for rec in result.recommendation:
        print(f"  - {rec}")
    print()
    print("All candidates:")
    for candidate in result.all_classifications:
        print(f"  {candidate.type.value:<18} {candidate.confidence * 100:5.1f}%")


def cmd_doctor(args):
    """Pre-flight checks for the host and the application."""
    import httpx

    config = get_config()
    limits = config.resource_limits()
    guard = ResourceGuard(limits, on_shutdown=lambda reason, code: None)
    ok = True

    checks = None
    environment_error = None
    try:
        checks = guard.validate_environment()
    except InsufficientResourcesError as e:
        environment_error = str(e)
        ok = False

    url = args.url or config.base_url
    app = None
    if url:
        try:
            with httpx.Client(timeout=10, follow_redirects=True) as client:
                resp = client.get(url)
            app = {"url": url, "status": resp.status_code, "ok": resp.status_code < 500}
        except httpx.HTTPError as e:
            app = {"url": url, "error": error_message(e), "ok": False}
        ok = ok and app["ok"]

    if args.json:
        report = {
            "ok": ok,
            "environment": checks.to_dict() if checks else {"error": environment_error},
            "guard": guard.snapshot(),
            "app": app,
            "env": {name: os.environ.get(name) for name in ENV_VARS},
        }
        print(json.dumps(report, indent=2, ensure_ascii=False))
        if not ok:
            sys.exit(1)
        return

    print("=" * 50)
    print("qakit doctor")
    print("=" * 50)

    if checks:
        print(f"  Python:      {checks.python_version}")
        print(f"  Platform:    {checks.platform} ({checks.arch})")
        print(f"  Free memory: {checks.memory_mb} MB")
    else:
        print(f"  Environment: FAIL ({environment_error})")

    print(f"  Suite:       {config.suite} (max runtime {int(limits.max_run_time_s)}s)")
    print(f"  Evidence:    {config.evidence_dir}")
    print()
    print("Environment variables:")
    for name in ENV_VARS:
        value = os.environ.get(name)
        print(f"  {name:<28} {value if value is not None else '(default)'}")
    print()

    if app is None:
        print("  App: skipped (no --url and APP_BASE_URL not set)")
    elif "error" in app:
        print(f"  App {url}: FAIL ({app['error']})")
    else:
        print(f"  App {url}: {'OK' if app['ok'] else 'FAIL'} (HTTP {app['status']})")

    if not ok:
        sys.exit(1)


async def _open_page(config: QAKitConfig, work):
    from playwright.async_api import async_playwright

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.headless)
        try:
            context = await browser.new_context()
            page = await context.new_page()
            return await work(page)
        finally:
            await browser.close()


def cmd_health(args):
    """Score the health of a page."""
    config = get_config()

    async def _health():
        async with ResourceGuard(config.resource_limits()) as guard:
            install_handlers(guard)
            scorer = PageHealthScorer()

            async def work(page):
                scorer.attach_to_page(page)
                await guard.with_retry(
                    lambda: guard.with_timeout(
                        lambda: page.goto(args.url, wait_until="load"),
                        f"goto {args.url}",
                        guard.limits.page_timeout_ms,
                    ),
                    f"goto {args.url}",
                )
                return await scorer.assess_page_health(page)

            return await _open_page(config, work)

    report = asyncio.run(_health())

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return

    status = "healthy" if report.is_healthy else "degraded"
    print(f"Health score: {report.score}/100 ({status})")
    print(f"URL: {report.url}")
    for issue in report.issues:
        print(f"  - {issue}")
    if report.recommendations:
        print()
        print("Recommendations:")
        for rec in report.recommendations:
            print(f"  - {rec}")


def cmd_capture(args):
    """Write an evidence bundle for a page."""
    config = get_config()

    async def _capture():
        async with ResourceGuard(config.resource_limits()) as guard:
            install_handlers(guard)
            scorer = PageHealthScorer()
            collector = EvidenceCollector(
                args.output or config.evidence_dir,
                observer=scorer,
                capture_timeout_ms=guard.limits.screenshot_timeout_ms,
            )

            async def work(page):
                scorer.attach_to_page(page)
                error = args.error
                try:
                    await guard.with_timeout(
                        lambda: page.goto(args.url, wait_until="load"),
                        f"goto {args.url}",
                        guard.limits.page_timeout_ms,
                    )
                except Exception as e:
                    error = error or error_message(e)
                return await collector.collect(page, FailureInfo(name=args.name, error=error or ""))

            return await _open_page(config, work)

    bundle = asyncio.run(_capture())

    print(f"Evidence written to {bundle.directory}")
    print(f"Captured: {', '.join(bundle.captured_categories()) or 'nothing'}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="qakit - test safety net",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    qakit classify artifacts/evidence/2024-...-login
    qakit doctor --url http://localhost:3000
    qakit doctor --json
    qakit health http://localhost:3000
    qakit capture http://localhost:3000 --name checkout
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Classify
    classify_p = subparsers.add_parser("classify", help="Classify a stored evidence bundle")
    classify_p.add_argument("path", help="Bundle directory or evidence.json")
    classify_p.add_argument("--json", action="store_true", help="Print JSON")

    # Doctor
    doctor_p = subparsers.add_parser("doctor", help="Pre-flight checks")
    doctor_p.add_argument("--url", help="Application URL (default: APP_BASE_URL)")
    doctor_p.add_argument("--json", action="store_true", help="Print JSON")

    # Health
    health_p = subparsers.add_parser("health", help="Score the health of a page")
    health_p.add_argument("url", help="Page URL")
    health_p.add_argument("--json", action="store_true", help="Print JSON")

    # Capture
    capture_p = subparsers.add_parser("capture", help="Write an evidence bundle for a page")
    capture_p.add_argument("url", help="Page URL")
    capture_p.add_argument("-n", "--name", required=True, help="Test name")
    capture_p.add_argument("-e", "--error", help="Error message to record")
    capture_p.add_argument("-o", "--output", help="Evidence directory")

    args = parser.parse_args()

    config = get_config()
    configure_logging(logging.DEBUG if args.verbose else config.log_level)

    commands = {
        "classify": cmd_classify,
        "doctor": cmd_doctor,
        "health": cmd_health,
        "capture": cmd_capture,
    }

    if args.command in commands:
        commands[args.command](args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
