"""
Structured decision journal.

Every decision and order event is recorded with full context:
- event, action, lifecycle state, reason
- price, average, limit price, size
- order ids and errors

Events are written as JSON lines for later analysis and mirrored as a
one-line summary to the "Engine" logger.
"""

import json
import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Dict, Optional

from ..common.types import format_price


class DecisionJournal:
    """
    Writes to a JSON lines file and to the console logger.
    Passing journal_file=None disables the file.
    """

    def __init__(self, journal_file: Optional[str] = None, recent_size: int = 20):
        self.journal_file = journal_file
        self._fh = None
        self.recent: Deque[str] = deque(maxlen=recent_size)
        self.console_logger = logging.getLogger("Engine")

        if self.journal_file:
            path = Path(journal_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(path, 'a', encoding='utf-8')

    def log_event(self, event: str, level: int = logging.INFO, **fields):
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
        }
        for key, value in fields.items():
            if value is None:
                continue
            if isinstance(value, Enum):
                entry[key] = value.name
            elif isinstance(value, float):
                entry[key] = round(value, 8)
            elif isinstance(value, BaseException):
                entry[key] = f"{type(value).__name__}: {value}"
            else:
                entry[key] = value

        if self._fh:
            self._fh.write(json.dumps(entry, default=str) + '\n')
            self._fh.flush()

        message = self._summary(entry)
        self.recent.append(message)
        self.console_logger.log(level, message)
        return entry

    def _summary(self, entry: Dict[str, Any]) -> str:
        parts = [entry["event"]]
        if "action" in entry:
            parts.append(entry["action"])
        if "state" in entry:
            parts.append(f"[{entry['state']}]")

        metrics = []
        for key in ("price", "average", "limit_price"):
            if key in entry:
                metrics.append(f"{key}={format_price(entry[key])}")
        if "size" in entry:
            metrics.append(f"size={entry['size']}")
        if "order_id" in entry:
            metrics.append(f"oid={entry['order_id']}")
        if metrics:
            parts.append("| " + " ".join(metrics))

        if "reason" in entry:
            parts.append(f"| {entry['reason']}")
        if "detail" in entry:
            parts.append(f"({entry['detail']})")
        if "error" in entry:
            parts.append(f"| {entry['error']}")
        return " ".join(parts)

    def log_config(self, config_dict: Dict[str, Any]):
        self.log_event("CONFIG_LOADED", config=config_dict)

    def close(self):
        if self._fh:
            self._fh.close()
            self._fh = None
