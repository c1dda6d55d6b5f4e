"""Test orchestrator: capture, compare and accept baselines per subject."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import bound_contextvars

from visualperfect.constants import DEFAULT_DIFF_TOLERANCE
from visualperfect.diff.engine import DimensionMismatch, Match, Mismatch, VisualDiff, decode_png
from visualperfect.exceptions import CaptureFailed, DecodeError, MissingCandidate, WriteError
from visualperfect.models.domain import BaselineInfo, VisualTestResult
from visualperfect.runner.locks import SubjectLocks
from visualperfect.types import ErrorKind, ResultStatus
from visualperfect.utils.sanitize import validate_subject
from visualperfect.utils.timing import timed

if TYPE_CHECKING:
    from visualperfect.capture.driver import CaptureDriver
    from visualperfect.storage.baselines import BaselineStore

logger = structlog.get_logger(__name__)


class VisualTestOrchestrator:
    """Runs visual tests and accepts candidates, one request per subject at a time.

    Requests for different subjects proceed concurrently. A request for a
    subject that is already in flight waits for it to finish; the lock is held
    across capture, compare and any baseline write.
    """

    def __init__(
        self,
        driver: CaptureDriver,
        store: BaselineStore,
        differ: VisualDiff | None = None,
        tolerance: float = DEFAULT_DIFF_TOLERANCE,
        persist_diffs: bool = True,
    ) -> None:
        self._driver = driver
        self._store = store
        self._differ = differ or VisualDiff(threshold=tolerance)
        self._tolerance = tolerance
        self._persist_diffs = persist_diffs
        self._locks = SubjectLocks()

    async def run_test(self, subject: str) -> VisualTestResult:
        """Capture the subject and classify it against its baseline."""
        subject = validate_subject(subject)
        async with self._locks.hold(subject):
            with bound_contextvars(subject=subject):
                logger.info("run_test_started")
                try:
                    result = await self._run_test(subject)
                except CaptureFailed as e:
                    result = _error(subject, ErrorKind.CAPTURE_FAILED, f"capture failed: {e}")
                except DecodeError as e:
                    result = _error(subject, ErrorKind.DECODE_ERROR, f"could not decode image: {e}")
                except WriteError as e:
                    result = _error(subject, ErrorKind.WRITE_ERROR, f"could not save baseline: {e}")
                except OSError as e:
                    result = _error(subject, ErrorKind.WRITE_ERROR, f"baseline storage failed: {e}")
                logger.info(
                    "run_test_finished",
                    status=result.status.value,
                    mismatch_count=result.mismatch_count,
                )
                return result

    async def _run_test(self, subject: str) -> VisualTestResult:
        with timed("capture"):
            candidate = await self._driver.capture(subject)

        if not await self._store.exists(subject):
            # Reject garbage before it becomes the reference image
            await asyncio.to_thread(decode_png, candidate)
            await self._store.write(subject, candidate)
            logger.info("baseline_created")
            return VisualTestResult(
                subject=subject,
                status=ResultStatus.NEW,
                message="New baseline image created.",
                candidate_image=candidate,
                baseline_exists=True,
            )

        baseline = await self._store.load(subject)
        with timed("compare"):
            outcome = await asyncio.to_thread(
                self._differ.compare, baseline, candidate, self._tolerance
            )

        if isinstance(outcome, DimensionMismatch):
            await self._store.write(subject, candidate)
            await self._store.remove_derived(subject)
            bw, bh = outcome.baseline_size
            cw, ch = outcome.candidate_size
            return VisualTestResult(
                subject=subject,
                status=ResultStatus.FAILED,
                message=(
                    f"dimensions differ: baseline {bw}x{bh}, candidate {cw}x{ch}. "
                    "Candidate saved as the new baseline."
                ),
                candidate_image=candidate,
                baseline_image=baseline,
                baseline_exists=True,
            )

        if isinstance(outcome, Match):
            await self._store.remove_derived(subject)
            return VisualTestResult(
                subject=subject,
                status=ResultStatus.SUCCESS,
                message="No visual changes detected.",
                baseline_exists=True,
                mismatch_count=0,
            )

        if not isinstance(outcome, Mismatch):
            msg = f"unexpected diff outcome: {outcome!r}"
            raise TypeError(msg)
        if self._persist_diffs:
            try:
                await self._store.write_diff(subject, outcome.diff_image)
            except WriteError as e:
                # diff artifacts are optional
                logger.warning("diff_write_failed", error=str(e))
        return VisualTestResult(
            subject=subject,
            status=ResultStatus.FAILED,
            message=f"{outcome.count} pixels differ",
            candidate_image=candidate,
            diff_image=outcome.diff_image,
            baseline_image=baseline,
            baseline_exists=True,
            mismatch_count=outcome.count,
        )

    async def accept(self, subject: str, candidate: bytes | None) -> VisualTestResult:
        """Promote the caller-supplied candidate to be the subject's baseline."""
        subject = validate_subject(subject)
        if not candidate:
            raise MissingCandidate("a candidate image is required to accept")
        async with self._locks.hold(subject):
            with bound_contextvars(subject=subject):
                try:
                    await asyncio.to_thread(decode_png, candidate)
                except DecodeError as e:
                    logger.warning("accept_rejected", error=str(e))
                    return _error(subject, ErrorKind.INVALID_IMAGE, f"candidate is not a valid image: {e}")
                try:
                    await self._store.write(subject, candidate)
                except WriteError as e:
                    return _error(subject, ErrorKind.WRITE_ERROR, f"could not save baseline: {e}")
                try:
                    await self._store.remove_derived(subject)
                except OSError as e:
                    logger.warning("diff_remove_failed", error=str(e))
                logger.info("baseline_accepted", size=len(candidate))
                return VisualTestResult(
                    subject=subject,
                    status=ResultStatus.SUCCESS,
                    message="baseline accepted",
                    baseline_exists=True,
                )

    async def get_baseline(self, subject: str) -> BaselineInfo:
        """Return the stored baseline, if any, without taking the subject lock."""
        subject = validate_subject(subject)
        if not await self._store.exists(subject):
            return BaselineInfo(subject=subject, exists=False)
        return BaselineInfo(subject=subject, exists=True, image=await self._store.load(subject))

    async def list_baselines(self) -> list[str]:
        """Subjects that currently have a stored baseline."""
        return await self._store.list_subjects()


def _error(subject: str, kind: ErrorKind, message: str) -> VisualTestResult:
    logger.error("visual_test_error", subject=subject, kind=kind.value, error=message)
    return VisualTestResult(
        subject=subject,
        status=ResultStatus.ERROR,
        message=message,
        error_kind=kind,
    )
