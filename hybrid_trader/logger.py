"""Decision, trade and risk logging for the hybrid trading engine."""

import json
import logging
import os
from dataclasses import asdict
from typing import List, Optional, Union

from hybrid_trader.models import DecisionLogEntry, RiskLogEntry, TradeLogEntry

logger = logging.getLogger(__name__)

LogEntry = Union[DecisionLogEntry, TradeLogEntry, RiskLogEntry]

_ENTRY_KINDS = {
    DecisionLogEntry: "decision",
    TradeLogEntry: "trade",
    RiskLogEntry: "risk",
}


class DecisionLogger:
    """Best-effort structured log of engine decisions in JSONL format."""

    def __init__(self, log_file: Optional[str] = None, keep_in_memory: bool = True, max_memory_entries: int = 1000):
        """
        Initialize logger with an optional output file path.

        Args:
            log_file: Path to JSONL log file (created if it doesn't exist). None keeps entries in memory only.
            keep_in_memory: Also keep the most recent entries in memory
            max_memory_entries: Cap on the in-memory buffer
        """
        self.log_file = log_file
        self.keep_in_memory = keep_in_memory
        self.max_memory_entries = max_memory_entries
        self.entries: List[dict] = []

        if log_file:
            log_dir = os.path.dirname(log_file)
            try:
                if log_dir and not os.path.exists(log_dir):
                    os.makedirs(log_dir)
            except OSError as e:
                logger.warning(f"Could not create log directory {log_dir}: {e}")

    def record(self, entry: LogEntry) -> None:
        """
        Append one entry. Never raises.

        Writes one JSON object per line in append-only mode and flushes after
        each write. Failures are reported on the module logger and dropped.

        Args:
            entry: Decision, trade or risk record
        """
        try:
            log_dict = {"kind": _ENTRY_KINDS.get(type(entry), "unknown")}
            log_dict.update(asdict(entry))
        except TypeError as e:
            logger.warning(f"Dropping unloggable entry {entry!r}: {e}")
            return

        if self.keep_in_memory:
            self.entries.append(log_dict)
            if len(self.entries) > self.max_memory_entries:
                del self.entries[0]

        if not self.log_file:
            return

        try:
            with open(self.log_file, "a") as f:
                json.dump(log_dict, f, default=str)
                f.write("\n")
                f.flush()
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to write {log_dict['kind']} log entry: {e}")

    def log_decision(self, entry: DecisionLogEntry) -> None:
        self.record(entry)

    def log_trade(self, entry: TradeLogEntry) -> None:
        self.record(entry)

    def log_risk(self, entry: RiskLogEntry) -> None:
        self.record(entry)

    def get_entries(self, kind: Optional[str] = None) -> List[dict]:
        """Return buffered entries, optionally filtered by kind ("decision", "trade", "risk")."""
        if kind is None:
            return list(self.entries)
        return [e for e in self.entries if e["kind"] == kind]

    def clear(self) -> None:
        self.entries.clear()
