"""Background hand-off of finalized sessions to the report backend."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from PySide6.QtCore import QObject, Qt, QThread, Signal, Slot

from ..core.errors import ApiError
from ..core.models import FinalizedSession
from .api_client import TestRecordClient

logger = logging.getLogger(__name__)


class SubmitWorker(QObject):
    """Posts one finalized session; meant to live in its own QThread."""

    succeeded = Signal(object, object)  # (SubmitResult, FinalizedSession)
    failed = Signal(str, object)  # (message, FinalizedSession)
    finished = Signal()

    def __init__(self, client: TestRecordClient, finalized: FinalizedSession) -> None:
        super().__init__()
        self._client = client
        self._finalized = finalized

    @Slot()
    def run(self) -> None:
        try:
            result = self._client.submit_test(self._finalized)
        except ApiError as exc:
            logger.error("Submitting test failed: %s", exc)
            self.failed.emit(str(exc), self._finalized)
        else:
            self.succeeded.emit(result, self._finalized)
        finally:
            self.finished.emit()


class ApiSessionSink(QObject):
    """
    :class:`~emisense.core.session.SessionSink` that posts in the background.

    ``submit`` returns immediately so reading ingestion never waits on the
    network. The outcome arrives through ``submitted`` / ``submit_failed``;
    a failed session is passed back so the caller can retry it.
    """

    submitted = Signal(object, object)  # (SubmitResult, FinalizedSession)
    submit_failed = Signal(str, object)  # (message, FinalizedSession)
    idle = Signal()

    def __init__(self, client: TestRecordClient, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._client = client
        self._jobs: List[Tuple[QThread, SubmitWorker]] = []

    def pending(self) -> int:
        return len(self._jobs)

    def submit(self, finalized: FinalizedSession) -> None:
        thread = QThread(self)
        worker = SubmitWorker(self._client, finalized)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.succeeded.connect(self.submitted)
        worker.failed.connect(self.submit_failed)
        # quit directly so wait() on the owner thread can return
        worker.finished.connect(thread.quit, Qt.ConnectionType.DirectConnection)
        worker.finished.connect(worker.deleteLater)
        thread.finished.connect(lambda: self._forget(thread))
        thread.finished.connect(thread.deleteLater)
        self._jobs.append((thread, worker))
        thread.start()

    def wait(self, timeout_ms: int = 5000) -> None:
        """Block until running submissions finish (used on shutdown)."""
        for thread, _worker in list(self._jobs):
            thread.wait(max(0, int(timeout_ms)))

    def _forget(self, thread: QThread) -> None:
        self._jobs = [job for job in self._jobs if job[0] is not thread]
        if not self._jobs:
            self.idle.emit()
