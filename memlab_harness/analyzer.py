"""Find leaks in a snapshot directory using memlab."""

import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from .errors import AnalysisError
from .models import LeakRecord

logger = logging.getLogger(__name__)

# Runs under node; argv[1] is the snapshot directory, argv[2] the result file.
# findLeaks prints progress to stdout, so results go through a file.
FIND_LEAKS_SCRIPT = '''
const fs = require("fs");
const { BrowserInteractionResultReader, findLeaks } = require("@memlab/api");

(async () => {
  const reader = BrowserInteractionResultReader.from(process.argv[1]);
  const leaks = await findLeaks(reader);
  fs.writeFileSync(process.argv[2], JSON.stringify(leaks || []));
})().catch((err) => {
  console.error((err && err.stack) || String(err));
  process.exit(1);
});
'''


class LeakAnalyzer(Protocol):
    """Anything that turns a snapshot directory into leak records."""

    def analyze(self, directory: Path) -> list:
        ...


class MemlabAnalyzer:
    """Run ``@memlab/api`` findLeaks in a node subprocess.

    The node executable comes from ``node`` or the MEMLAB_NODE environment
    variable; ``@memlab/api`` must be resolvable from the working
    directory (or NODE_PATH).
    """

    def __init__(self, node: Optional[str] = None, cwd: Optional[Path] = None):
        self.node = node or os.environ.get("MEMLAB_NODE", "node")
        self.cwd = cwd

    def analyze(self, directory: Path) -> list:
        """Return the leaks memlab finds in ``directory``.

        Raises:
            AnalysisError: node is missing, memlab failed, or its output
                could not be read.
        """
        directory = Path(directory).resolve()

        with tempfile.TemporaryDirectory(prefix="memlab-harness-") as tmp:
            result_path = Path(tmp) / "leaks.json"
            command = [self.node, "-e", FIND_LEAKS_SCRIPT, str(directory), str(result_path)]

            logger.debug("Running memlab findLeaks on %s", directory)
            try:
                completed = subprocess.run(
                    command,
                    cwd=self.cwd,
                    capture_output=True,
                    text=True,
                )
            except FileNotFoundError as e:
                raise AnalysisError(
                    f"Node executable not found: {self.node}. Install Node.js or set MEMLAB_NODE"
                ) from e

            if completed.returncode != 0:
                detail = (completed.stderr or completed.stdout or "").strip()
                raise AnalysisError(
                    f"memlab findLeaks exited with status {completed.returncode}: {detail}"
                )

            try:
                response_text = result_path.read_text(encoding="utf-8")
            except OSError as e:
                raise AnalysisError(f"memlab produced no result file: {e}") from e

        return _parse_leaks_response(response_text)


def _parse_leaks_response(response_text: str) -> list:
    """Parse the JSON leak array written by findLeaks."""
    try:
        result = json.loads(response_text)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Could not parse memlab output: {e}") from e

    if not isinstance(result, list):
        raise AnalysisError(
            f"Expected a list of leaks from memlab, got {type(result).__name__}"
        )
    return [LeakRecord.from_raw(item) for item in result]
