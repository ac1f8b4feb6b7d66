import json
import logging
from pathlib import Path

import pytest

from memlab_harness.browser import CHUNK_EVENT, PlaywrightHeapSession, run_memory_leak_test
from memlab_harness.orchestrator import HarnessState
from memlab_harness.snapshot import data_dir


class FakeCDPSession:
    """Mimics Playwright's CDPSession: events fire during send()."""

    def __init__(self, chunks, log=None):
        self.chunks = chunks
        self.listeners = {}
        self.sent = []
        self.log = log if log is not None else []
        self.detached = False

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.listeners[event].remove(handler)

    def send(self, method, params=None):
        self.sent.append(method)
        if method == "HeapProfiler.takeHeapSnapshot":
            self.log.append("snapshot")
            for chunk in self.chunks:
                for handler in list(self.listeners.get(CHUNK_EVENT, [])):
                    handler({"chunk": chunk})
        if method == "Runtime.getHeapUsage":
            return {"usedSize": 4321, "totalSize": 9999}
        return {}

    def detach(self):
        self.detached = True


class FakeContext:
    def __init__(self, cdp):
        self.cdp = cdp

    def new_cdp_session(self, page):
        return self.cdp


class FakePage:
    def __init__(self, cdp, log=None, user_agent_error=None):
        self.context = FakeContext(cdp)
        self.log = log if log is not None else []
        self.user_agent_error = user_agent_error

    def goto(self, url):
        self.log.append(f"goto {url}")

    def click(self, selector):
        self.log.append(f"click {selector}")

    def go_back(self):
        self.log.append("go_back")

    def wait_for_load_state(self, state):
        pass

    def wait_for_timeout(self, ms):
        self.log.append(f"wait {ms}")

    def evaluate(self, expression):
        if self.user_agent_error is not None:
            raise self.user_agent_error
        return "Mozilla/5.0 HeadlessChrome/120.0"


class FakeBrowserType:
    name = "chromium"


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.browser_type = FakeBrowserType()
        self.version = "120.0.6099.28"
        self.closed = False

    def new_page(self):
        return self.page

    def close(self):
        self.closed = True


class FakePlaywright:
    def __init__(self, browser):
        self.browser = browser
        self.chromium = self
        self.launched_headless = None

    def launch(self, headless=True):
        self.launched_headless = headless
        return self.browser

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def fake_playwright(monkeypatch):
    sync_api = pytest.importorskip("playwright.sync_api")

    def install(user_agent_error=None):
        log = []
        cdp = FakeCDPSession(["{", '"nodes":[]', "}"], log=log)
        page = FakePage(cdp, log=log, user_agent_error=user_agent_error)
        driver = FakePlaywright(FakeBrowser(page))
        monkeypatch.setattr(sync_api, "sync_playwright", lambda: driver)
        return driver, cdp, log

    return install


def test_session_streams_chunks_in_order(tmp_path: Path) -> None:
    from memlab_harness.snapshot import capture_heap_snapshot

    cdp = FakeCDPSession(['{"nodes":[', "1,2,3", "]}"])
    session = PlaywrightHeapSession(FakePage(cdp))

    path = capture_heap_snapshot(session, "baseline", tmp_path)

    assert path.read_text() == '{"nodes":[1,2,3]}'
    assert cdp.sent == ["HeapProfiler.collectGarbage", "HeapProfiler.takeHeapSnapshot"]
    assert cdp.listeners[CHUNK_EVENT] == []


def test_session_heap_usage() -> None:
    session = PlaywrightHeapSession(FakePage(FakeCDPSession([])))

    assert session.heap_used_size() == 4321


def test_leak_test_loads_clicks_and_goes_back(tmp_path: Path, fake_playwright) -> None:
    driver, cdp, log = fake_playwright()

    harness = run_memory_leak_test(
        "https://playwright.dev/",
        "text=Get started",
        output_dir=tmp_path,
        test_name="playwright-memory-leak-test",
        action_name="open-get-started",
    )

    assert log == [
        "goto https://playwright.dev/", "snapshot",
        "click text=Get started", "snapshot",
        "go_back", "snapshot",
    ]
    assert harness.state is HarnessState.CAPTURING
    assert driver.launched_headless is True
    assert driver.browser.closed
    assert cdp.detached

    meta = json.loads((data_dir(tmp_path) / "run-meta.json").read_text())
    assert meta["browser"] == {
        "name": "chromium",
        "version": "120.0.6099.28",
        "userAgent": "Mozilla/5.0 HeadlessChrome/120.0",
    }
    assert meta["testName"] == "playwright-memory-leak-test"
    steps = json.loads((data_dir(tmp_path) / "snap-seq.json").read_text())
    assert [s["JSHeapUsedSize"] for s in steps] == [4321, 4321, 4321]
    assert steps[1]["name"] == "open-get-started"
    assert (data_dir(tmp_path) / "s3.heapsnapshot").read_text() == '{"nodes":[]}'


def test_leak_test_waits_between_steps(tmp_path: Path, fake_playwright) -> None:
    _, _, log = fake_playwright()

    run_memory_leak_test("https://example.com", "#open", output_dir=tmp_path, wait_ms=250)

    assert log.count("wait 250") == 3


def test_user_agent_failure_still_captures(tmp_path: Path, fake_playwright, caplog) -> None:
    _, _, log = fake_playwright(user_agent_error=RuntimeError("execution context destroyed"))

    with caplog.at_level(logging.WARNING, logger="memlab_harness.browser"):
        run_memory_leak_test("https://example.com", "#open", output_dir=tmp_path)

    assert log.count("snapshot") == 3
    assert "navigator.userAgent" in caplog.text
    meta = json.loads((data_dir(tmp_path) / "run-meta.json").read_text())
    assert meta["browser"]["userAgent"] == ""


def test_detach_and_close_after_failed_capture(tmp_path: Path, fake_playwright) -> None:
    driver, cdp, _ = fake_playwright()

    def fail_click(selector):
        raise RuntimeError("element not found")

    driver.browser.page.click = fail_click

    with pytest.raises(RuntimeError, match="element not found"):
        run_memory_leak_test("https://example.com", "#missing", output_dir=tmp_path)

    assert cdp.detached
    assert driver.browser.closed
