import unittest
from datetime import datetime, timezone

from emisense.core.errors import ApiError
from emisense.core.models import (
    AggregateResult,
    DisplaySample,
    FinalizedSession,
    SensorReading,
    SessionMetadata,
    SubmitResult,
)
from emisense.remote.submit_worker import ApiSessionSink, SubmitWorker


def _finalized() -> FinalizedSession:
    reading = SensorReading(10.0, 2.0, datetime(2024, 1, 1, tzinfo=timezone.utc))
    return FinalizedSession(
        metadata=SessionMetadata("A", "B", "C", "125", "08"),
        samples=(DisplaySample.from_reading(reading),),
        aggregate=AggregateResult(10.0, 2.0, 10.0, 2.0, 1),
        duration_seconds=1,
    )


class _StubClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def submit_test(self, finalized):
        self.calls.append(finalized)
        if self.error is not None:
            raise self.error
        return SubmitResult(test_id=11)


class SubmitWorkerTest(unittest.TestCase):
    def test_success_emits_result_and_finished(self):
        finalized = _finalized()
        worker = SubmitWorker(_StubClient(), finalized)
        succeeded, failed, finished = [], [], []
        worker.succeeded.connect(lambda result, f: succeeded.append((result, f)))
        worker.failed.connect(lambda msg, f: failed.append(msg))
        worker.finished.connect(lambda: finished.append(True))

        worker.run()

        self.assertEqual(len(succeeded), 1)
        self.assertEqual(succeeded[0][0].test_id, 11)
        self.assertIs(succeeded[0][1], finalized)
        self.assertEqual(failed, [])
        self.assertEqual(finished, [True])

    def test_api_error_hands_session_back(self):
        finalized = _finalized()
        worker = SubmitWorker(_StubClient(ApiError("timeout", 504)), finalized)
        failed, finished = [], []
        worker.failed.connect(lambda msg, f: failed.append((msg, f)))
        worker.finished.connect(lambda: finished.append(True))

        worker.run()

        self.assertEqual(len(failed), 1)
        self.assertIn("timeout", failed[0][0])
        self.assertIs(failed[0][1], finalized)
        self.assertEqual(finished, [True])


class ApiSessionSinkTest(unittest.TestCase):
    def test_submit_runs_in_background_and_finishes(self):
        client = _StubClient()
        sink = ApiSessionSink(client)

        sink.submit(_finalized())
        self.assertEqual(sink.pending(), 1)
        sink.wait(5000)

        self.assertEqual(len(client.calls), 1)


if __name__ == "__main__":
    unittest.main()
