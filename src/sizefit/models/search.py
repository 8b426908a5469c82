"""Shared Pydantic models for size-targeted re-encoding."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class SearchStatus(str, Enum):
    """Where the final candidate landed relative to the requested range."""
    WITHIN_RANGE = "within_range"
    BELOW_MIN = "below_min"
    ABOVE_MAX = "above_max"


class SizeRange(BaseModel):
    """Inclusive target interval for the encoded size, in kilobytes.

    Ordering of the bounds is checked by the search engine, not here, so that
    an inverted range surfaces as InvalidRangeError.
    """
    min_kb: int = Field(..., gt=0, description="Minimum encoded size in KB")
    max_kb: int = Field(..., gt=0, description="Maximum encoded size in KB")

    def classify(self, size_kb: int) -> SearchStatus:
        if size_kb < self.min_kb:
            return SearchStatus.BELOW_MIN
        if size_kb > self.max_kb:
            return SearchStatus.ABOVE_MAX
        return SearchStatus.WITHIN_RANGE


class SearchConfig(BaseModel):
    """Tuning constants for the size search."""

    max_quality: float = Field(1.0, gt=0, le=1, description="Quality used for the baseline and enlargement")
    initial_quality: float = Field(0.7, gt=0, le=1, description="First quality tried by the bisection")
    quality_floor: float = Field(0.001, gt=0, le=1, description="Initial lower bound of the bisection")
    max_iterations: int = Field(20, gt=0, description="Hard cap on bisection iterations")
    stuck_threshold: int = Field(10, ge=0, description="Iterations after which an oversized result triggers a dimension reset")
    dimension_reset_factor: float = Field(0.9, gt=0, lt=1, description="Scale applied to the dimensions on each reset")
    reset_quality_low: float = Field(0.01, gt=0, le=1)
    reset_quality_high: float = Field(0.7, gt=0, le=1)
    reset_quality: float = Field(0.3, gt=0, le=1)
    upscale_step: float = Field(0.2, gt=0, description="Scale increment per enlargement step")
    max_upscale: float = Field(3.0, gt=1, description="Upper bound on total enlargement")
    shrink_step: float = Field(0.1, gt=0, lt=1, description="Scale decrement per forced-shrink step")
    min_shrink_scale: float = Field(0.1, gt=0, lt=1, description="Smallest forced-shrink scale of the native size")
    forced_quality: float = Field(0.1, gt=0, le=1, description="Quality used while force-shrinking")

    @model_validator(mode="after")
    def check_quality_bounds(self) -> "SearchConfig":
        if self.quality_floor >= self.max_quality:
            raise ValueError("quality_floor must be below max_quality")
        if not self.reset_quality_low < self.reset_quality < self.reset_quality_high:
            raise ValueError("reset_quality must lie strictly between reset_quality_low and reset_quality_high")
        if self.upscale_step > self.max_upscale - 1.0 + 1e-9:
            raise ValueError("upscale_step must not exceed max_upscale - 1")
        if self.shrink_step > 1.0 - self.min_shrink_scale + 1e-9:
            raise ValueError("shrink_step must not exceed 1 - min_shrink_scale")
        return self

    @property
    def upscale_steps(self) -> int:
        return int(round((self.max_upscale - 1.0) / self.upscale_step, 6))

    @property
    def shrink_steps(self) -> int:
        return int(round((1.0 - self.min_shrink_scale) / self.shrink_step, 6))

    @property
    def max_encode_calls(self) -> int:
        """Upper bound on codec encodes for one search."""
        return 1 + self.upscale_steps + self.max_iterations + self.shrink_steps


class BisectionStep(BaseModel):
    """One quality-search iteration, with the bounds in force when it ran."""
    iteration: int
    epoch: int
    width: int
    height: int
    quality: float
    q_low: float
    q_high: float
    size_kb: int


class SearchResult(BaseModel):
    """Terminal output of a size search.

    ``data`` is always a usable encoding, even when the status reports that the
    range could not be reached.
    """
    data: bytes = Field(..., repr=False)
    size_kb: int
    status: SearchStatus
    width: int
    height: int
    quality: float
    size_range: SizeRange
    encode_calls: int = 0
    quality_iterations: int = 0
    trace: List[BisectionStep] = Field(default_factory=list, repr=False)

    @property
    def within_range(self) -> bool:
        return self.status == SearchStatus.WITHIN_RANGE

    @property
    def message(self) -> Optional[str]:
        """Human-readable explanation of a shortfall or overshoot."""
        if self.status == SearchStatus.BELOW_MIN:
            return f"Could not reach minimum size of {self.size_range.min_kb}KB. Best result: {self.size_kb}KB"
        if self.status == SearchStatus.ABOVE_MAX:
            return f"Could not get below maximum size of {self.size_range.max_kb}KB. Best result: {self.size_kb}KB"
        return None
