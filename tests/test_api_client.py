from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

import pytest
import requests

from emisense.core.aggregate import summarize
from emisense.core.errors import ApiError
from emisense.core.models import DisplaySample, FinalizedSession, SensorReading, SessionMetadata
from emisense.remote.api_client import TestRecordClient, pdf_filename

BASE = "http://localhost:3001/api"


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, content: bytes = b"", text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.content = content
        self.text = text

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no JSON")
        return self._body


class FakeSession:
    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.requests: List[dict] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


def _finalized() -> FinalizedSession:
    at = datetime(2024, 5, 1, 3, 0, 0, tzinfo=timezone.utc)
    samples = tuple(
        DisplaySample.from_reading(SensorReading(a, b, at)) for a, b in [(100.0, 10.0), (250.5, 40.25)]
    )
    return FinalizedSession(
        metadata=SessionMetadata(
            owner_name="Siti",
            vehicle_brand="Yamaha",
            vehicle_model="NMAX",
            engine_cc="155",
            phone_number="0812",
        ),
        samples=samples,
        aggregate=summarize(list(samples), 12),
        duration_seconds=12,
    )


def test_submit_posts_backend_payload() -> None:
    session = FakeSession(FakeResponse(201, {"success": True, "id": 42}))
    client = TestRecordClient(BASE + "/", session=session)

    result = client.submit_test(_finalized())

    assert result.test_id == 42
    assert result.recommendation is None
    sent = session.requests[0]
    assert sent["method"] == "POST"
    assert sent["url"] == f"{BASE}/tests"
    assert sent["timeout"] == 15.0
    body = sent["json"]
    assert body["nama"] == "Siti"
    assert body["merk_motor"] == "Yamaha"
    assert body["nama_motor"] == "NMAX"
    assert body["cc_motor"] == "155"
    assert body["nomor_wa"] == "0812"
    assert body["avg_mq135"] == 175.25
    assert body["max_mq7"] == 40.25
    assert body["test_duration"] == 12
    assert set(body["test_data"][0]) == {"time", "MQ135", "MQ7"}


def test_submit_reads_id_and_recommendation_from_data_block() -> None:
    body = {"success": True, "data": {"id": 7, "recommendation": {"status": "Perlu servis"}}}
    client = TestRecordClient(BASE, session=FakeSession(FakeResponse(200, body)))

    result = client.submit_test(_finalized())

    assert result.test_id == 7
    assert result.recommendation == {"status": "Perlu servis"}


def test_success_false_raises_with_backend_message() -> None:
    client = TestRecordClient(BASE, session=FakeSession(FakeResponse(200, {"success": False, "error": "db locked"})))

    with pytest.raises(ApiError, match="db locked"):
        client.submit_test(_finalized())


def test_http_error_carries_status_code() -> None:
    client = TestRecordClient(BASE, session=FakeSession(FakeResponse(500, None, text="Internal Server Error")))

    with pytest.raises(ApiError) as excinfo:
        client.list_tests()

    assert excinfo.value.status_code == 500
    assert "Internal Server Error" in str(excinfo.value)


def test_transport_failure_becomes_api_error() -> None:
    client = TestRecordClient(BASE, session=FakeSession(requests.ConnectionError("refused")))

    with pytest.raises(ApiError, match="refused"):
        client.delete_test(3)


def test_list_tests_returns_rows() -> None:
    rows = [{"id": 1, "nama": "A"}, {"id": 2, "nama": "B"}]
    session = FakeSession(FakeResponse(200, {"success": True, "data": rows}))
    client = TestRecordClient(BASE, session=session)

    assert client.list_tests() == rows
    assert session.requests[0]["method"] == "GET"
    assert session.requests[0]["url"] == f"{BASE}/tests"


def test_list_tests_rejects_malformed_data() -> None:
    client = TestRecordClient(BASE, session=FakeSession(FakeResponse(200, {"success": True, "data": {"id": 1}})))
    with pytest.raises(ApiError):
        client.list_tests()


def test_recommendations_return_data_block() -> None:
    session = FakeSession(FakeResponse(200, {"success": True, "data": {"items": ["Ganti busi"]}}))
    client = TestRecordClient(BASE, session=session)

    assert client.fetch_recommendations(9) == {"items": ["Ganti busi"]}
    assert session.requests[0]["url"] == f"{BASE}/tests/9/recommendations"


def test_download_pdf_writes_bytes(tmp_path) -> None:
    session = FakeSession(FakeResponse(200, None, content=b"%PDF-1.4 test"))
    client = TestRecordClient(BASE, session=session)
    target = tmp_path / "out" / "report.pdf"

    written = client.download_pdf(5, target)

    assert written == target
    assert target.read_bytes() == b"%PDF-1.4 test"
    assert session.requests[0]["url"] == f"{BASE}/tests/5/pdf"


def test_pdf_failure_raises() -> None:
    client = TestRecordClient(BASE, session=FakeSession(FakeResponse(404, None)))
    with pytest.raises(ApiError) as excinfo:
        client.fetch_pdf(5)
    assert excinfo.value.status_code == 404


def test_close_releases_session() -> None:
    session = FakeSession()
    TestRecordClient(BASE, session=session).close()
    assert session.closed


def test_pdf_filename_replaces_whitespace() -> None:
    assert pdf_filename({"id": 12, "nama": "Budi  Santoso"}) == "test-emisi-Budi__Santoso-12.pdf"
    assert pdf_filename({"id": 3}) == "test-emisi-test-3.pdf"
