"""Command-line entry point for EmiSense.

This module wires up argument parsing, logging, the Qt core event loop and
the session core. ``monitor`` and ``run-test`` drive the live link; the
remaining commands pass straight through to the report backend.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QCoreApplication, QObject, QTimer

from .config.runtime import EmiSenseConfig, load_config
from .config.thresholds import ThresholdConfig, load_thresholds
from .core.classifier import classify_reading
from .core.errors import ApiError, EmptySessionError, MissingMetadataError, SessionError
from .core.models import (
    METADATA_FIELDS,
    Channel,
    FinalizedSession,
    SensorReading,
    SessionMetadata,
    SubmitResult,
    format_duration,
    format_time_label,
)
from .core.session import TestSessionController
from .core.validator import ReadingValidator
from .remote.api_client import TestRecordClient, pdf_filename
from .remote.connection import ConnectionManager
from .remote.submit_worker import ApiSessionSink

logger = logging.getLogger(__name__)

DEBUG_ENV = "EMISENSE_DEBUG"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NO_DATA = 2


@dataclass
class CoreHandles:
    connection: ConnectionManager
    controller: TestSessionController
    client: TestRecordClient
    sink: ApiSessionSink
    thresholds: ThresholdConfig


def create_core(config: EmiSenseConfig, parent: Optional[QObject] = None) -> CoreHandles:
    """Build the connection manager, controller and report sink from ``config``."""
    connection = ConnectionManager(
        transports=config.socket_transports,
        retry_interval_s=config.reconnect_delay_s,
        max_attempts=config.reconnect_attempts,
        parent=parent,
    )
    client = TestRecordClient(config.api_base_url, timeout_s=config.request_timeout_s)
    sink = ApiSessionSink(client, parent=parent)
    validator = ReadingValidator(
        ceiling=config.reading_ceiling,
        channel_a_key=config.channel_a_key,
        channel_b_key=config.channel_b_key,
    )
    controller = TestSessionController(
        connection,
        sink,
        validator=validator,
        display_capacity=config.display_capacity,
        tick_interval_ms=config.tick_interval_ms,
        parent=parent,
    )
    connection.on_reading(controller.handle_payload)
    return CoreHandles(
        connection=connection,
        controller=controller,
        client=client,
        sink=sink,
        thresholds=load_thresholds(config.thresholds_path),
    )


def describe_reading(reading: SensorReading, thresholds: ThresholdConfig) -> str:
    severities = classify_reading(reading, thresholds)
    return (
        f"{format_time_label(reading.observed_at)}  "
        f"MQ-135 {reading.channel_a:8.2f} ppm [{severities[Channel.A].value}]  "
        f"MQ-7 {reading.channel_b:8.2f} ppm [{severities[Channel.B].value}]"
    )


class HeadlessTestRun(QObject):
    """
    Runs one timed test without a UI.

    Waits for the bench, records for ``duration_s`` seconds, then submits
    ``metadata`` and quits the event loop with an exit code.
    """

    def __init__(
        self,
        app: QCoreApplication,
        core: CoreHandles,
        metadata: SessionMetadata,
        duration_s: float,
        connect_timeout_s: float,
    ) -> None:
        super().__init__()
        self._app = app
        self._core = core
        self._metadata = metadata
        self._duration_ms = max(1, int(duration_s * 1000))
        self._connect_timeout_ms = max(1, int(connect_timeout_s * 1000))
        self._started = False

        core.connection.on_connectivity_changed(self._on_connectivity)
        core.controller.store.duration_changed.connect(self._on_duration)
        core.sink.submitted.connect(self._on_submitted)
        core.sink.submit_failed.connect(self._on_submit_failed)

    def start(self) -> None:
        if self._core.connection.connected:
            self._begin()
        QTimer.singleShot(self._connect_timeout_ms, self._on_connect_timeout)

    def _on_connectivity(self, connected: bool) -> None:
        if connected and not self._started:
            self._begin()
        elif not connected and self._started:
            logger.warning("Bench disconnected during the test; waiting for it to come back")

    def _on_connect_timeout(self) -> None:
        if not self._started:
            print("Bench did not connect in time", file=sys.stderr)
            self._app.exit(EXIT_FAILED)

    def _begin(self) -> None:
        try:
            self._core.controller.start()
        except SessionError as exc:
            logger.warning("Could not start test: %s", exc)
            return
        self._started = True
        print(f"Test started, recording for {self._duration_ms / 1000:.0f}s")
        QTimer.singleShot(self._duration_ms, self._finish)

    def _on_duration(self, seconds: int) -> None:
        if seconds:
            logger.debug("Elapsed %s", format_duration(seconds))

    def _finish(self) -> None:
        controller = self._core.controller
        try:
            controller.stop()
        except EmptySessionError as exc:
            print(str(exc), file=sys.stderr)
            self._app.exit(EXIT_NO_DATA)
            return
        try:
            finalized = controller.submit(self._metadata)
        except MissingMetadataError as exc:
            print(str(exc), file=sys.stderr)
            controller.cancel()
            self._app.exit(EXIT_FAILED)
            return
        agg = finalized.aggregate
        print(
            f"Duration {format_duration(finalized.duration_seconds)}  "
            f"MQ-135 avg {agg.mean_a:.2f} max {agg.max_a:.2f}  "
            f"MQ-7 avg {agg.mean_b:.2f} max {agg.max_b:.2f}"
        )

    def _on_submitted(self, result: SubmitResult, _finalized: FinalizedSession) -> None:
        print(f"Saved test #{result.test_id}")
        if result.recommendation:
            print(json.dumps(result.recommendation, indent=2, ensure_ascii=False))
        self._app.exit(EXIT_OK)

    def _on_submit_failed(self, message: str, _finalized: FinalizedSession) -> None:
        print(f"Saving failed: {message}", file=sys.stderr)
        self._app.exit(EXIT_FAILED)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="emisense", description="Emission test bench client")
    parser.add_argument("--config", type=Path, default=None, help="YAML runtime configuration")
    parser.add_argument("--socket-url", default=None, help="Telemetry socket.io endpoint")
    parser.add_argument("--api-url", default=None, help="Report backend base URL (…/api)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    monitor = sub.add_parser("monitor", help="Print live readings with their severity")
    monitor.add_argument(
        "--seconds",
        type=float,
        default=0.0,
        help="Stop after this many seconds (default: run until Ctrl-C)",
    )

    run = sub.add_parser("run-test", help="Record one timed test and submit it")
    run.add_argument("--duration", type=float, default=30.0, help="Test length in seconds (default: 30)")
    run.add_argument(
        "--connect-timeout",
        type=float,
        default=15.0,
        help="Seconds to wait for the bench to report connected (default: 15)",
    )
    for attr, _wire, label in METADATA_FIELDS:
        run.add_argument(f"--{attr.replace('_', '-')}", dest=attr, default="", help=label)

    sub.add_parser("history", help="List stored tests")

    pdf = sub.add_parser("pdf", help="Download the PDF report of a test")
    pdf.add_argument("test_id")
    pdf.add_argument("-o", "--output", type=Path, default=None, help="Target file")

    delete = sub.add_parser("delete", help="Delete a stored test")
    delete.add_argument("test_id")

    rec = sub.add_parser("recommendations", help="Show maintenance recommendations for a test")
    rec.add_argument("test_id")
    return parser


def configure_logging(verbose: bool) -> None:
    debug = verbose or os.getenv(DEBUG_ENV, "").lower() in {"1", "true", "yes", "on"}
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_config(args: argparse.Namespace) -> EmiSenseConfig:
    config = load_config(args.config)
    if args.socket_url:
        config.socket_url = args.socket_url
    if args.api_url:
        config.api_base_url = args.api_url
    return config.sanitized()


def create_app(argv: list[str]) -> QCoreApplication:
    app = QCoreApplication.instance() or QCoreApplication(argv)
    # Let Ctrl-C through: the Qt loop must return to Python now and then
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    heartbeat = QTimer(app)
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(200)
    return app


def _run_monitor(args: argparse.Namespace, config: EmiSenseConfig) -> int:
    app = create_app(sys.argv[:1])
    core = create_core(config)
    core.controller.store.live_reading_changed.connect(
        lambda reading: print(describe_reading(reading, core.thresholds), flush=True)
    )
    core.connection.on_connectivity_changed(
        lambda connected: print("Bench connected" if connected else "Bench disconnected", flush=True)
    )
    core.connection.connect(config.socket_url)
    if args.seconds > 0:
        QTimer.singleShot(int(args.seconds * 1000), app.quit)
    try:
        return int(app.exec())
    finally:
        core.connection.close()


def _run_test(args: argparse.Namespace, config: EmiSenseConfig) -> int:
    metadata = SessionMetadata(**{attr: getattr(args, attr) for attr, _w, _l in METADATA_FIELDS})
    missing = metadata.missing_fields()
    if missing:
        flags = ", ".join("--" + name.replace("_", "-") for name in missing)
        print(f"Missing required fields: {flags}", file=sys.stderr)
        return EXIT_FAILED

    app = create_app(sys.argv[:1])
    core = create_core(config)
    run = HeadlessTestRun(app, core, metadata, args.duration, args.connect_timeout)
    core.connection.connect(config.socket_url)
    run.start()
    try:
        return int(app.exec())
    finally:
        core.sink.wait()
        core.connection.close()


def _run_backend_command(args: argparse.Namespace, config: EmiSenseConfig) -> int:
    client = TestRecordClient(config.api_base_url, timeout_s=config.request_timeout_s)
    try:
        if args.command == "history":
            tests = client.list_tests()
            for test in tests:
                print(
                    f"#{test.get('id')}  {test.get('nama', '')}  "
                    f"{test.get('merk_motor', '')} {test.get('nama_motor', '')} "
                    f"({test.get('cc_motor', '')}cc)  "
                    f"MQ-135 avg {test.get('avg_mq135')}  MQ-7 avg {test.get('avg_mq7')}"
                )
            print(f"{len(tests)} test(s)")
        elif args.command == "pdf":
            target = args.output
            if target is None:
                target = Path(pdf_filename({"id": args.test_id, "nama": _lookup_name(client, args.test_id)}))
            client.download_pdf(args.test_id, target)
            print(f"Wrote {target}")
        elif args.command == "delete":
            client.delete_test(args.test_id)
            print(f"Deleted test #{args.test_id}")
        elif args.command == "recommendations":
            data = client.fetch_recommendations(args.test_id)
            print(json.dumps(data, indent=2, ensure_ascii=False))
    except ApiError as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        client.close()
    return EXIT_OK


def _lookup_name(client: TestRecordClient, test_id: str) -> str:
    for test in client.list_tests():
        if str(test.get("id")) == str(test_id):
            return str(test.get("nama", "test"))
    return "test"


def main(argv: list[str] | None = None) -> None:
    raw_argv = argv if argv is not None else sys.argv
    args = _build_arg_parser().parse_args(raw_argv[1:])
    configure_logging(args.verbose)
    config = resolve_config(args)
    logger.debug("Using configuration: %s", config)

    if args.command == "monitor":
        code = _run_monitor(args, config)
    elif args.command == "run-test":
        code = _run_test(args, config)
    else:
        code = _run_backend_command(args, config)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
