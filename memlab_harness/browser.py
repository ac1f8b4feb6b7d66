"""Playwright integration: CDP heap session and the three-step leak test."""

import logging
from collections import deque
from typing import Iterator, Optional

from .errors import HarnessError
from .orchestrator import LeakHarness

logger = logging.getLogger(__name__)

CHUNK_EVENT = "HeapProfiler.addHeapSnapshotChunk"


class PlaywrightHeapSession:
    """Heap snapshot session over a Chromium page's DevTools protocol."""

    def __init__(self, page):
        self.page = page
        self._cdp = page.context.new_cdp_session(page)

    def collect_garbage(self) -> None:
        self._cdp.send("HeapProfiler.collectGarbage")

    def heap_used_size(self) -> Optional[int]:
        usage = self._cdp.send("Runtime.getHeapUsage")
        return usage.get("usedSize")

    def stream_heap_snapshot(self) -> Iterator[str]:
        """Yield snapshot chunks in the order the browser sent them."""
        chunks = deque()

        def on_chunk(event):
            chunks.append(event["chunk"])

        self._cdp.on(CHUNK_EVENT, on_chunk)
        try:
            self._cdp.send("HeapProfiler.takeHeapSnapshot", {"reportProgress": False})
        finally:
            self._cdp.remove_listener(CHUNK_EVENT, on_chunk)

        while chunks:
            yield chunks.popleft()

    def detach(self) -> None:
        self._cdp.detach()


def run_memory_leak_test(
    base_url: str,
    target_selector: str,
    output_dir="./memlab-snapshots",
    test_name: str = "memory-leak-test",
    action_name: Optional[str] = None,
    wait_ms: int = 0,
    headless: bool = True,
    strict_gc: bool = False,
) -> LeakHarness:
    """Capture baseline/target/final snapshots around a click and back.

    Loads ``base_url`` (baseline), clicks ``target_selector`` (target),
    then navigates back (final). Returns the harness with capture done,
    ready for ``analyze``.
    """
    try:
        from playwright.sync_api import sync_playwright
    except ImportError as e:
        raise HarnessError(
            "playwright package not installed. Run: pip install playwright && playwright install chromium"
        ) from e

    harness = LeakHarness(output_dir)

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=headless)
        try:
            page = browser.new_page()
            session = PlaywrightHeapSession(page)

            def settle():
                page.wait_for_load_state("networkidle")
                if wait_ms:
                    page.wait_for_timeout(wait_ms)

            def load():
                page.goto(base_url)
                settle()

            def act():
                page.click(target_selector)
                settle()

            def revert():
                page.go_back()
                settle()

            try:
                harness.capture(
                    session,
                    [load, act, revert],
                    run_info={
                        "browser_name": _browser_detail(lambda: browser.browser_type.name, "name"),
                        "browser_version": _browser_detail(lambda: browser.version, "version"),
                        "user_agent": _browser_detail(
                            lambda: page.evaluate("() => navigator.userAgent"), "navigator.userAgent"
                        ),
                        "test_name": test_name,
                    },
                    action_name=action_name,
                    strict_gc=strict_gc,
                )
            finally:
                session.detach()
        finally:
            browser.close()

    return harness


def _browser_detail(read, label: str) -> str:
    """Read one run-meta.json detail from the browser; empty when unavailable."""
    try:
        return read() or ""
    except Exception as e:
        logger.warning("Could not read browser %s: %s", label, e)
        return ""
