"""Async HTTP client that drives a ClientViewState against the visual test API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from visualperfect.client import state as view_state
from visualperfect.constants import API_BASE_PATH
from visualperfect.exceptions import DecodeError
from visualperfect.models.api import BaselineResponse, ResultResponse
from visualperfect.models.domain import VisualTestResult
from visualperfect.types import ResultStatus
from visualperfect.utils.images import from_data_uri, to_data_uri

if TYPE_CHECKING:
    from visualperfect.client.state import ClientViewState
    from visualperfect.types import ImageView

logger = structlog.get_logger(__name__)


class PanelClient:
    """What a UI panel does: select a subject, run, accept, redo, switch images.

    The view state is only ever changed through the pure functions in
    ``visualperfect.client.state``. Results for a subject that is no longer
    selected are dropped.
    """

    def __init__(self, http: httpx.AsyncClient, base_path: str = API_BASE_PATH) -> None:
        self._http = http
        self._base_path = base_path.rstrip("/")
        self._state: ClientViewState | None = None

    @property
    def state(self) -> ClientViewState:
        if self._state is None:
            raise RuntimeError("No subject selected. Call select_subject() first.")
        return self._state

    def select_subject(self, subject: str) -> ClientViewState:
        if self._state is None:
            self._state = view_state.initial_state(subject)
        else:
            self._state = view_state.switch_subject(self._state, subject)
        return self._state

    async def run_test(self) -> ClientViewState:
        current = view_state.request_run(self.state)
        self._state = current
        result = await self._post("/test", {"subject": current.subject}, current.subject)
        self._state = view_state.apply_result(self.state, result)
        return self._state

    async def redo(self) -> ClientViewState:
        return await self.run_test()

    async def accept(self) -> ClientViewState:
        current = view_state.request_accept(self.state)
        self._state = current
        # request_accept guarantees a candidate is present
        payload = {
            "subject": current.subject,
            "imageBase64": to_data_uri(current.candidate_image or b""),
        }
        result = await self._post("/accept", payload, current.subject)
        self._state = view_state.apply_result(self.state, result)
        return self._state

    def show(self, view: ImageView) -> ClientViewState:
        self._state = view_state.select_view(self.state, view)
        return self._state

    async def load_baseline(self) -> ClientViewState:
        """Fetch the stored baseline for the selected subject."""
        subject = self.state.subject
        try:
            resp = await self._http.get(f"{self._base_path}/baseline/{subject}")
            resp.raise_for_status()
            body = BaselineResponse.model_validate(resp.json())
            image = from_data_uri(body.baseline_image) if body.baseline_image else None
        except (httpx.HTTPError, ValueError, DecodeError) as e:
            logger.warning("panel_request_failed", path="/baseline", subject=subject, error=str(e))
            if self.state.subject == subject:
                self._state = view_state.request_failed(self.state, f"request failed: {e}")
            return self.state
        if self.state.subject == subject:
            self._state = view_state.with_baseline(self.state, image)
        return self.state

    async def _post(self, path: str, payload: dict[str, Any], subject: str) -> VisualTestResult:
        try:
            resp = await self._http.post(f"{self._base_path}{path}", json=payload)
            body = resp.json()
            if "subject" not in body:
                body = {**body, "subject": subject}
            return ResultResponse.model_validate(body).to_result()
        except (httpx.HTTPError, ValueError, DecodeError) as e:
            logger.warning("panel_request_failed", path=path, subject=subject, error=str(e))
            return VisualTestResult(
                subject=subject,
                status=ResultStatus.ERROR,
                message=f"request failed: {e}",
            )
