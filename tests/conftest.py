"""Pytest configuration. Puts the project root on sys.path and provides fake collaborators."""
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeSession:
    """Heap session emitting fixed chunks, one chunk list per capture."""

    def __init__(self, snapshots, heap_sizes=None, gc_error=None):
        self.snapshots = list(snapshots)
        self.heap_sizes = list(heap_sizes or [])
        self.gc_error = gc_error
        self.calls = []

    def collect_garbage(self):
        self.calls.append("gc")
        if self.gc_error is not None:
            raise self.gc_error

    def stream_heap_snapshot(self):
        self.calls.append("snapshot")
        for chunk in self.snapshots.pop(0):
            yield chunk

    def heap_used_size(self):
        if not self.heap_sizes:
            raise RuntimeError("Runtime.getHeapUsage not supported")
        return self.heap_sizes.pop(0)


class FakeAnalyzer:
    """Analyzer returning canned leaks, or raising a canned error."""

    def __init__(self, leaks=None, error=None):
        self.leaks = leaks or []
        self.error = error
        self.directories = []

    def analyze(self, directory):
        self.directories.append(directory)
        if self.error is not None:
            raise self.error
        return self.leaks


@pytest.fixture
def fake_session_factory():
    return FakeSession


@pytest.fixture
def fake_analyzer_factory():
    return FakeAnalyzer


@pytest.fixture
def sample_leak():
    return {
        "retainedSize": 2097152,
        "nodes": [1, 2],
        "trace": {
            "path": [
                {"id": 11, "name": "Window", "retainedSize": 4096},
                {"id": 12, "type": "closure", "edge": "listener", "retainedSize": 2097152},
            ]
        },
    }
