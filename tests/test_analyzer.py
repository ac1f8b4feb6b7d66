import json
import subprocess
from pathlib import Path

import pytest

from memlab_harness.analyzer import FIND_LEAKS_SCRIPT, MemlabAnalyzer, _parse_leaks_response
from memlab_harness.errors import AnalysisError
from memlab_harness.models import LeakRecord, PathTrace


def _fake_run(result=None, returncode=0, stderr="", calls=None):
    def run(command, **kwargs):
        if calls is not None:
            calls.append((command, kwargs))
        if result is not None:
            Path(command[4]).write_text(result)
        return subprocess.CompletedProcess(command, returncode, stdout="progress...", stderr=stderr)
    return run


def test_analyze_runs_find_leaks(tmp_path: Path, monkeypatch, sample_leak) -> None:
    calls = []
    monkeypatch.setattr(subprocess, "run", _fake_run(json.dumps([sample_leak]), calls=calls))

    leaks = MemlabAnalyzer(node="/opt/node/bin/node").analyze(tmp_path)

    command, kwargs = calls[0]
    assert command[:3] == ["/opt/node/bin/node", "-e", FIND_LEAKS_SCRIPT]
    assert command[3] == str(tmp_path.resolve())
    assert kwargs["capture_output"] is True
    assert len(leaks) == 1
    assert isinstance(leaks[0], LeakRecord)
    assert isinstance(leaks[0].trace, PathTrace)
    assert leaks[0].raw == sample_leak


def test_node_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("MEMLAB_NODE", "/usr/local/bin/node18")

    assert MemlabAnalyzer().node == "/usr/local/bin/node18"


def test_nonzero_exit_raises(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(subprocess, "run", _fake_run(returncode=1, stderr="Error: Cannot find module '@memlab/api'"))

    with pytest.raises(AnalysisError, match="@memlab/api"):
        MemlabAnalyzer().analyze(tmp_path)


def test_missing_node_raises(tmp_path: Path, monkeypatch) -> None:
    def run(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(subprocess, "run", run)

    with pytest.raises(AnalysisError, match="MEMLAB_NODE"):
        MemlabAnalyzer(node="no-such-node").analyze(tmp_path)


def test_missing_result_file_raises(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(subprocess, "run", _fake_run())

    with pytest.raises(AnalysisError, match="no result file"):
        MemlabAnalyzer().analyze(tmp_path)


@pytest.mark.parametrize("response", ["not json", '{"leaks": []}'])
def test_bad_response_raises(response) -> None:
    with pytest.raises(AnalysisError):
        _parse_leaks_response(response)


def test_empty_leak_list() -> None:
    assert _parse_leaks_response("[]") == []
