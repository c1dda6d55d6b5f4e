"""Per-subject view state of a panel consuming the visual test API.

Every function here is pure: it takes a ClientViewState and returns a new one
(or raises InvalidTransition). The panel owns exactly one state, created when a
subject is selected and replaced when the subject changes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import structlog

from visualperfect.exceptions import InvalidTransition
from visualperfect.types import ClientStatus, ImageView, PendingAction, ResultStatus

if TYPE_CHECKING:
    from visualperfect.models.domain import VisualTestResult

logger = structlog.get_logger(__name__)

_ACCEPTABLE = frozenset({ClientStatus.NEW, ClientStatus.FAILED})

_RESULT_STATUS = {
    ResultStatus.SUCCESS: ClientStatus.SUCCESS,
    ResultStatus.FAILED: ClientStatus.FAILED,
    ResultStatus.NEW: ClientStatus.NEW,
    ResultStatus.ERROR: ClientStatus.ERROR,
}


@dataclass(frozen=True)
class ClientViewState:
    subject: str
    status: ClientStatus = ClientStatus.IDLE
    message: str = ""
    candidate_image: bytes | None = None
    diff_image: bytes | None = None
    baseline_image: bytes | None = None
    baseline_exists: bool = False
    view: ImageView | None = None
    accepted: bool = False
    pending: PendingAction | None = None

    def image_for(self, view: ImageView) -> bytes | None:
        return {
            ImageView.DIFF: self.diff_image,
            ImageView.CANDIDATE: self.candidate_image,
            ImageView.BASELINE: self.baseline_image,
        }[view]


def initial_state(subject: str) -> ClientViewState:
    return ClientViewState(subject=subject)


def can_run(state: ClientViewState) -> bool:
    return state.status != ClientStatus.RUNNING


def can_accept(state: ClientViewState) -> bool:
    return state.status in _ACCEPTABLE and state.candidate_image is not None


def request_run(state: ClientViewState) -> ClientViewState:
    """User asked for a run (or redo). Clears images and the accepted flag."""
    if not can_run(state):
        msg = f"cannot run {state.subject}: a request is already running"
        raise InvalidTransition(msg)
    return ClientViewState(
        subject=state.subject,
        status=ClientStatus.RUNNING,
        message="Capturing screenshot and comparing...",
        baseline_exists=state.baseline_exists,
        pending=PendingAction.RUN,
    )


def request_accept(state: ClientViewState) -> ClientViewState:
    """User asked to promote the current candidate. Images are kept for display."""
    if not can_accept(state):
        msg = f"cannot accept {state.subject} in state {state.status.value}"
        raise InvalidTransition(msg)
    return replace(
        state,
        status=ClientStatus.RUNNING,
        message="Accepting new baseline...",
        pending=PendingAction.ACCEPT,
    )


def apply_result(state: ClientViewState, result: VisualTestResult) -> ClientViewState:
    """Fold an orchestrator result into the view.

    Results for another subject, or arriving when nothing is pending, are late
    and ignored.
    """
    if result.subject != state.subject or state.status != ClientStatus.RUNNING:
        logger.debug(
            "late_result_ignored",
            subject=result.subject,
            current_subject=state.subject,
            status=state.status.value,
        )
        return state

    status = _RESULT_STATUS[result.status]

    if state.pending == PendingAction.ACCEPT:
        if status == ClientStatus.SUCCESS:
            return replace(
                state,
                status=ClientStatus.SUCCESS,
                message="accepted",
                baseline_image=state.candidate_image,
                baseline_exists=True,
                view=ImageView.BASELINE,
                accepted=True,
                pending=None,
            )
        return replace(state, status=status, message=result.message, pending=None)

    view: ImageView | None = None
    if status == ClientStatus.NEW:
        view = ImageView.CANDIDATE
    elif status == ClientStatus.FAILED:
        view = ImageView.DIFF if result.diff_image else ImageView.CANDIDATE

    return ClientViewState(
        subject=state.subject,
        status=status,
        message=result.message,
        candidate_image=result.candidate_image,
        diff_image=result.diff_image,
        baseline_image=result.baseline_image,
        baseline_exists=result.baseline_exists or state.baseline_exists,
        view=view,
    )


def select_view(state: ClientViewState, view: ImageView) -> ClientViewState:
    """Switch which image is displayed. Only images that exist can be selected."""
    if state.status == ClientStatus.RUNNING:
        raise InvalidTransition("cannot switch images while running")
    if state.image_for(view) is None:
        msg = f"no {view.value} image to show for {state.subject}"
        raise InvalidTransition(msg)
    return replace(state, view=view)


def switch_subject(state: ClientViewState, subject: str) -> ClientViewState:
    """Discard the current view; any in-flight result for it will be ignored."""
    if subject == state.subject:
        return state
    return initial_state(subject)


def with_baseline(state: ClientViewState, image: bytes | None) -> ClientViewState:
    """Record the stored baseline fetched for display."""
    return replace(state, baseline_image=image, baseline_exists=image is not None)


def displayed_image(state: ClientViewState) -> bytes | None:
    if state.view is None:
        return None
    return state.image_for(state.view)


def request_failed(state: ClientViewState, message: str) -> ClientViewState:
    """A side request (baseline fetch) failed; a pending run or accept is left alone."""
    if state.status == ClientStatus.RUNNING:
        return state
    return replace(state, status=ClientStatus.ERROR, message=message)
