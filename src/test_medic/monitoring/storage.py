"""Persistence port for the monitor: JSON files on disk, or memory for tests."""

import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import TypeAdapter, ValidationError

from ..errors import PersistenceError
from ..models import TestMetrics, TestResult

logger = structlog.get_logger(__name__)

HISTORY_FILE = "test-history.json"
METRICS_FILE = "test-metrics.json"
DASHBOARD_FILE = "dashboard.html"

history_adapter = TypeAdapter(list[TestResult])
metrics_adapter = TypeAdapter(dict[str, TestMetrics])


class MonitorStorage(Protocol):
    """Where the monitor keeps its history, metrics and rendered dashboard."""

    def load_history(self) -> list[TestResult]: ...

    def save_history(self, history: list[TestResult]) -> None: ...

    def load_metrics(self) -> dict[str, TestMetrics]: ...

    def save_metrics(self, metrics: dict[str, TestMetrics]) -> None: ...

    def write_dashboard(self, html: str) -> Path | None: ...


class JsonFileStorage:
    """
    Store monitor state as JSON documents in a report directory.

    Writes go to a temporary file that replaces the target, so a crash never
    leaves a half-written document behind.
    """

    def __init__(self, report_dir: Path):
        self.report_dir = Path(report_dir)

    @property
    def history_path(self) -> Path:
        return self.report_dir / HISTORY_FILE

    @property
    def metrics_path(self) -> Path:
        return self.report_dir / METRICS_FILE

    @property
    def dashboard_path(self) -> Path:
        return self.report_dir / DASHBOARD_FILE

    def load_history(self) -> list[TestResult]:
        return self._load(self.history_path, history_adapter, [])

    def save_history(self, history: list[TestResult]) -> None:
        self._write(self.history_path, history_adapter.dump_json(history, indent=2))

    def load_metrics(self) -> dict[str, TestMetrics]:
        return self._load(self.metrics_path, metrics_adapter, {})

    def save_metrics(self, metrics: dict[str, TestMetrics]) -> None:
        self._write(self.metrics_path, metrics_adapter.dump_json(metrics, indent=2))

    def write_dashboard(self, html: str) -> Path:
        self._write(self.dashboard_path, html.encode("utf-8"))
        return self.dashboard_path

    def _load(self, path: Path, adapter: TypeAdapter, empty):
        if not path.exists():
            return empty
        try:
            return adapter.validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            # Unreadable state is replaced on the next save
            logger.warning("monitor_state_unreadable", path=str(path), error=str(e))
            return empty

    def _write(self, path: Path, data: bytes) -> None:
        try:
            self.report_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.report_dir, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e


class InMemoryStorage:
    """Keep monitor state in memory. Used by tests and one-off reports."""

    def __init__(
        self,
        history: list[TestResult] | None = None,
        metrics: dict[str, TestMetrics] | None = None,
    ):
        self.history = list(history or [])
        self.metrics = dict(metrics or {})
        self.dashboard: str | None = None

    def load_history(self) -> list[TestResult]:
        return list(self.history)

    def save_history(self, history: list[TestResult]) -> None:
        self.history = list(history)

    def load_metrics(self) -> dict[str, TestMetrics]:
        return dict(self.metrics)

    def save_metrics(self, metrics: dict[str, TestMetrics]) -> None:
        self.metrics = dict(metrics)

    def write_dashboard(self, html: str) -> None:
        self.dashboard = html
