"""Visual regression diff engine using Pillow and pixelmatch."""

from __future__ import annotations

import io
from dataclasses import dataclass

import structlog
from PIL import Image, UnidentifiedImageError
from pixelmatch.contrib.PIL import pixelmatch

from visualperfect.constants import DEFAULT_DIFF_TOLERANCE
from visualperfect.exceptions import DecodeError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DimensionMismatch:
    """Baseline and candidate have different sizes; no pixel count exists."""

    baseline_size: tuple[int, int]
    candidate_size: tuple[int, int]


@dataclass(frozen=True)
class Match:
    """No pixel differs beyond the tolerance."""

    total_pixels: int = 0


@dataclass(frozen=True)
class Mismatch:
    """``count`` pixels differ; ``diff_image`` is a PNG of the same size."""

    count: int
    diff_image: bytes
    total_pixels: int = 0


DiffOutcome = DimensionMismatch | Match | Mismatch


def decode_png(data: bytes) -> Image.Image:
    """Decode PNG bytes into an RGBA Pillow image.

    Other formats Pillow can read are rejected: baselines are stored and
    served as PNG.
    """
    if not data:
        raise DecodeError("image data is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format != "PNG":
                msg = f"expected a PNG image, got {img.format or 'unknown'}"
                raise DecodeError(msg)
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        msg = f"could not decode image: {e}"
        raise DecodeError(msg) from e


def encode_png(img: Image.Image) -> bytes:
    """Encode an image as PNG with fixed options so output bytes are stable."""
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=False, compress_level=6)
    return buf.getvalue()


class VisualDiff:
    """Compares a baseline against a candidate screenshot pixel by pixel.

    A pixel counts as different when the YIQ colour distance between the two
    images exceeds ``threshold`` (0..1). Anti-aliased pixels are detected and
    not counted. The same inputs always produce the same count and the same
    diff PNG bytes.
    """

    def __init__(self, threshold: float = DEFAULT_DIFF_TOLERANCE) -> None:
        self._threshold = _check_tolerance(threshold)

    @property
    def threshold(self) -> float:
        return self._threshold

    def compare(
        self,
        baseline: bytes,
        candidate: bytes,
        tolerance: float | None = None,
    ) -> DiffOutcome:
        """Compare two encoded images."""
        threshold = self._threshold if tolerance is None else _check_tolerance(tolerance)
        baseline_img = decode_png(baseline)
        candidate_img = decode_png(candidate)

        if baseline_img.size != candidate_img.size:
            logger.warning(
                "size_mismatch",
                baseline=baseline_img.size,
                candidate=candidate_img.size,
            )
            return DimensionMismatch(
                baseline_size=baseline_img.size,
                candidate_size=candidate_img.size,
            )

        width, height = baseline_img.size
        total_pixels = width * height
        diff_img = Image.new("RGBA", (width, height))
        count = pixelmatch(baseline_img, candidate_img, diff_img, threshold=threshold)

        logger.info(
            "visual_diff_complete",
            threshold=threshold,
            changed_pixels=count,
            total_pixels=total_pixels,
        )

        if count == 0:
            return Match(total_pixels=total_pixels)
        return Mismatch(count=count, diff_image=encode_png(diff_img), total_pixels=total_pixels)


def _check_tolerance(value: float) -> float:
    if not 0.0 <= value <= 1.0:
        msg = f"tolerance must be between 0 and 1, got {value}"
        raise ValueError(msg)
    return float(value)
