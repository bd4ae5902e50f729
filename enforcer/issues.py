"""
Issue reports - learner feedback appended to a JSON-lines file.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from enforcer import config
from enforcer.schemas import IssueReport

logger = logging.getLogger(__name__)


class IssueLog:
    """
    Append-only JSON-lines log of IssueReport records.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else config.get_issues_path()
        self._lock = threading.Lock()

    def append(self, report: IssueReport) -> None:
        line = report.model_dump_json()
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        logger.info("Reported issue for card %s", report.card_id)

    def read_all(self) -> list[IssueReport]:
        """All reports in the order they were written."""
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as handle:
            return [IssueReport.model_validate(json.loads(line)) for line in handle if line.strip()]
