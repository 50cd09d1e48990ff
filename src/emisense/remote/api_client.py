"""HTTP client for the test-record backend (``/api/tests``)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from ..core.errors import ApiError
from ..core.models import FinalizedSession, SubmitResult

logger = logging.getLogger(__name__)


class TestRecordClient:
    """
    Thin wrapper over the backend REST routes.

    JSON routes answer ``{"success": bool, "data"?, "id"?, "error"?}``; a
    non-2xx status or ``success: false`` raises :class:`ApiError`.
    """

    __test__ = False

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = float(timeout_s)
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    # --------------------------------------------------------------- routes
    def submit_test(self, finalized: FinalizedSession) -> SubmitResult:
        body = self._request_json("POST", "/tests", json=finalized.to_payload())
        test_id = body.get("id")
        if test_id is None and isinstance(body.get("data"), dict):
            test_id = body["data"].get("id")
        recommendation = body.get("recommendation")
        if recommendation is None and isinstance(body.get("data"), dict):
            recommendation = body["data"].get("recommendation")
        logger.info("Stored test %s (%d samples)", test_id, len(finalized.samples))
        return SubmitResult(test_id=test_id, recommendation=recommendation)

    def list_tests(self) -> List[Dict[str, Any]]:
        body = self._request_json("GET", "/tests")
        data = body.get("data") or []
        if not isinstance(data, list):
            raise ApiError("Malformed test list in response")
        return data

    def delete_test(self, test_id: Any) -> None:
        self._request_json("DELETE", f"/tests/{test_id}")
        logger.info("Deleted test %s", test_id)

    def fetch_recommendations(self, test_id: Any) -> Any:
        body = self._request_json("GET", f"/tests/{test_id}/recommendations")
        return body.get("data")

    def fetch_pdf(self, test_id: Any) -> bytes:
        resp = self._request("GET", f"/tests/{test_id}/pdf")
        if resp.status_code // 100 != 2:
            raise ApiError("Failed to generate PDF", resp.status_code)
        return resp.content

    def download_pdf(self, test_id: Any, destination: Path) -> Path:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(self.fetch_pdf(test_id))
        return destination

    # --------------------------------------------------------------- helpers
    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self._session.request(method, url, timeout=self.timeout_s, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(f"{method} {url} failed: {exc}") from exc

    def _request_json(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        resp = self._request(method, path, **kwargs)
        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code // 100 != 2:
            msg = body.get("error") if isinstance(body, dict) else None
            raise ApiError(msg or resp.text or "request failed", resp.status_code)
        if not isinstance(body, dict):
            raise ApiError("Backend returned a non-JSON body", resp.status_code)
        if not body.get("success", False):
            raise ApiError(str(body.get("error") or "request failed"), resp.status_code)
        return body


def pdf_filename(test: Dict[str, Any]) -> str:
    """Download name used by the history view, e.g. ``test-emisi-Budi_S-12.pdf``."""
    name = re.sub(r"\s", "_", str(test.get("nama", "test")))
    return f"test-emisi-{name}-{test.get('id')}.pdf"
