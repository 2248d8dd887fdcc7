"""Key-value style stores for a single decision log."""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from chaispas.analytics import DecisionLog, export, parse
from chaispas.errors import StorageUnavailable
from chaispas.models import DecisionRecord

logger = logging.getLogger(__name__)


class MemoryStore:
    def __init__(self, log: Optional[List[DecisionRecord]] = None):
        self._log = list(log or [])

    def load(self) -> DecisionLog:
        return list(self._log)

    def store(self, log: DecisionLog) -> None:
        self._log = list(log)


class JsonFileStore:
    """
    Keeps the log as exported JSON in one file, like browser local storage
    keeps it under one key.

    A missing file is an empty log. Content that does not parse raises
    ``ParseError``; an unreadable or unwritable file raises ``StorageUnavailable``.
    """

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> DecisionLog:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {self.path}: {e}") from e
        if not text.strip():
            return []
        return parse(text)

    def store(self, log: DecisionLog) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {self.path}: {e}") from e

        # Atomic write
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(export(log))
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageUnavailable(f"Cannot write {self.path}: {e}") from e
        logger.debug("Stored %d decisions in %s", len(log), self.path)
