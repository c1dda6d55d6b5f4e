"""Inter-module data contracts (not persisted directly)."""

from pydantic import BaseModel

from visualperfect.types import ErrorKind, ResultStatus


class VisualTestResult(BaseModel):
    """Classified outcome of a RunTest or Accept request.

    Images are raw PNG bytes; the web layer turns them into data URIs.
    """

    subject: str
    status: ResultStatus
    message: str
    candidate_image: bytes | None = None
    diff_image: bytes | None = None
    baseline_image: bytes | None = None
    baseline_exists: bool = False
    mismatch_count: int | None = None
    error_kind: ErrorKind | None = None

    @property
    def is_error(self) -> bool:
        return self.status == ResultStatus.ERROR


class BaselineInfo(BaseModel):
    subject: str
    exists: bool
    image: bytes | None = None
