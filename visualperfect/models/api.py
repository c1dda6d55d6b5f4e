"""API request/response schemas for FastAPI endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from visualperfect.models.domain import BaselineInfo, VisualTestResult
from visualperfect.types import ErrorKind, ResultStatus
from visualperfect.utils.images import from_data_uri, to_data_uri


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RunTestRequest(BaseModel):
    subject: str = Field(validation_alias=AliasChoices("subject", "storyId"))


class AcceptRequest(BaseModel):
    subject: str = Field(validation_alias=AliasChoices("subject", "storyId"))
    image_base64: str | None = Field(
        default=None,
        validation_alias=AliasChoices("imageBase64", "image_base64", "newImage"),
    )


class ResultResponse(_CamelModel):
    subject: str
    status: ResultStatus
    message: str
    candidate_image: str | None = None
    diff_image: str | None = None
    baseline_image: str | None = None
    baseline_exists: bool = False
    mismatch_count: int | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def from_result(cls, result: VisualTestResult) -> ResultResponse:
        return cls(
            subject=result.subject,
            status=result.status,
            message=result.message,
            candidate_image=_encode(result.candidate_image),
            diff_image=_encode(result.diff_image),
            baseline_image=_encode(result.baseline_image),
            baseline_exists=result.baseline_exists,
            mismatch_count=result.mismatch_count,
            error_kind=result.error_kind,
        )

    def to_result(self) -> VisualTestResult:
        return VisualTestResult(
            subject=self.subject,
            status=self.status,
            message=self.message,
            candidate_image=_decode(self.candidate_image),
            diff_image=_decode(self.diff_image),
            baseline_image=_decode(self.baseline_image),
            baseline_exists=self.baseline_exists,
            mismatch_count=self.mismatch_count,
            error_kind=self.error_kind,
        )


class BaselineResponse(_CamelModel):
    subject: str
    status: Literal["baseline_exists", "no_baseline"]
    baseline_image: str | None = None

    @classmethod
    def from_info(cls, info: BaselineInfo) -> BaselineResponse:
        return cls(
            subject=info.subject,
            status="baseline_exists" if info.exists else "no_baseline",
            baseline_image=_encode(info.image),
        )


class BaselineListResponse(_CamelModel):
    subjects: list[str]


class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    message: str


def _encode(data: bytes | None) -> str | None:
    return to_data_uri(data) if data else None


def _decode(value: str | None) -> bytes | None:
    return from_data_uri(value) if value else None
