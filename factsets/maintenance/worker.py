"""Background loop that runs the maintenance sweeps on their intervals."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from factsets.config.models import FactsetsConfig
from factsets.interfaces.entities import TaskStatus, WorkerTaskState
from factsets.maintenance.sweeps import SWEEPS, SweepStore, SweepTask
from factsets.timeutil import utc_now

logger = logging.getLogger(__name__)


class MaintenanceWorker:
    """Runs due sweeps, persisting each task's outcome in the store.

    Config is re-resolved at the start of every cycle, so settings changed
    through ``factsets config set`` apply without a restart. Task state
    lives in the database, so intervals carry over between runs.
    """

    def __init__(
        self,
        store: SweepStore,
        config_loader: Callable[[], FactsetsConfig],
        tasks: dict[str, SweepTask] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._config_loader = config_loader
        self._tasks = dict(tasks) if tasks is not None else dict(SWEEPS)
        self._clock = clock

    @property
    def task_names(self) -> list[str]:
        return list(self._tasks)

    def is_due(self, name: str, config: FactsetsConfig, now: datetime) -> bool:
        state = self._store.load_task_state(name)
        if state is None or state.last_run_at is None:
            return True
        interval = getattr(config.worker, name)
        return (now - state.last_run_at).total_seconds() >= interval

    def run_task(self, name: str, config: FactsetsConfig, now: datetime) -> WorkerTaskState:
        """Run one sweep. Failures are recorded, never raised."""
        task = self._tasks[name]
        try:
            outcome = task(self._store, config, now)
            state = WorkerTaskState(
                task_name=name,
                last_run_at=now,
                last_status=outcome.status,
                last_message=outcome.message,
                items_processed=outcome.items_processed,
            )
        except Exception as e:
            logger.exception("Maintenance task %s failed", name)
            state = WorkerTaskState(
                task_name=name,
                last_run_at=now,
                last_status=TaskStatus.error,
                last_message=str(e),
            )
        self._store.save_task_state(state)
        if state.last_status is TaskStatus.success:
            logger.info("%s: %s", name, state.last_message)
        else:
            logger.debug("%s: %s (%s)", name, state.last_status.value, state.last_message)
        return state

    def run_cycle(self, force: bool = False) -> tuple[FactsetsConfig, list[WorkerTaskState]]:
        """Run every due task (all of them with *force*) and return the config used."""
        config = self._config_loader()
        now = self._clock()
        results = [
            self.run_task(name, config, now)
            for name in self._tasks
            if force or self.is_due(name, config, now)
        ]
        return config, results

    def run_forever(self, stop_event: threading.Event) -> None:
        """Poll until *stop_event* is set."""
        logger.info("Maintenance worker started (%d tasks)", len(self._tasks))
        while not stop_event.is_set():
            try:
                config, _ = self.run_cycle()
                poll = config.worker.poll_interval
            except Exception:
                logger.exception("Maintenance cycle failed")
                poll = FactsetsConfig().worker.poll_interval
            stop_event.wait(poll)
        logger.info("Maintenance worker stopped")
