"""Remote communication with the bench backend.

:class:`ConnectionManager` keeps the socket.io telemetry link alive, while
:class:`TestRecordClient` and :class:`ApiSessionSink` talk to the REST routes
that store finished tests and render their PDF reports.
"""

from .api_client import TestRecordClient, pdf_filename
from .connection import ConnectionManager
from .submit_worker import ApiSessionSink, SubmitWorker

__all__ = [
    "ApiSessionSink",
    "ConnectionManager",
    "SubmitWorker",
    "TestRecordClient",
    "pdf_filename",
]
