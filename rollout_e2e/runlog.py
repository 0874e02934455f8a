"""Tagged run log: colored console lines plus a buffered structured record.

A RunLog is passed explicitly to whatever needs to report progress. Loggers
created with child() share one LogSink so the whole suite can be dumped to a
single JSON file grouped by tag at the end of a run.
"""

import json
import os
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from colorama import Fore, Style, init

init(autoreset=True)

_LEVEL_PREFIX = {
    "debug": f"{Style.DIM}[DEBUG]{Style.RESET_ALL}",
    "info": f"{Fore.CYAN}[INFO]{Style.RESET_ALL} ",
    "warn": f"{Fore.YELLOW}[WARN]{Style.RESET_ALL} ",
    "error": f"{Fore.RED}[ERROR]{Style.RESET_ALL}",
}


class LogSink:
    """Thread-safe buffer of structured log records."""

    def __init__(self):
        self._records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def append(self, record: Dict[str, Any]):
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._records)

    def by_tag(self) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for record in self.records:
            grouped.setdefault(record.get("tag", ""), []).append(record)
        return grouped

    def write_suite_log(self, directory: str) -> str:
        """Write test_suite_log_<timestamp>.json with records grouped by tag."""
        os.makedirs(directory, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = os.path.join(directory, f"test_suite_log_{timestamp}.json")
        payload = {
            "test_timestamp": timestamp,
            "logs_by_tags": self.by_tag(),
        }
        with open(path, "w") as f:
            json.dump(payload, f, indent=2, default=str)
        return path


class RunLog:
    """Logger handle bound to one tag."""

    def __init__(self, tag: str = "suite", sink: Optional[LogSink] = None,
                 echo: bool = True, debug: bool = False):
        self.tag = tag
        self.sink = sink if sink is not None else LogSink()
        self.echo = echo
        self.show_debug = debug

    def child(self, tag: str) -> "RunLog":
        return RunLog(tag, self.sink, echo=self.echo, debug=self.show_debug)

    def _emit(self, level: str, message: str, fields: Dict[str, Any]):
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "tag": self.tag,
            "message": message,
        }
        record.update(fields)
        self.sink.append(record)

        if self.echo and (level != "debug" or self.show_debug):
            print(f"{_LEVEL_PREFIX[level]} {message}")

    def debug(self, message: str, **fields):
        self._emit("debug", message, fields)

    def info(self, message: str, **fields):
        self._emit("info", message, fields)

    def warn(self, message: str, **fields):
        self._emit("warn", message, fields)

    def error(self, message: str, **fields):
        self._emit("error", message, fields)
