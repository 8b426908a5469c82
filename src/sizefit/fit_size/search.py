"""
Size-targeted re-encoding: find an encoding whose size lands in a KB range.

The search is a small state machine. Each handler performs at most one encode
and returns the next state, and every state that can repeat is bounded by a
counter from SearchConfig, so the total number of encodes is bounded by
SearchConfig.max_encode_calls.

    BASELINE ──< min──> ENLARGE ──overshoot──┐
        │                  │                 v
        ├──> max──────────────────────> QUALITY_SEARCH <──> DIMENSION_RESET
        │                  │                 │
        v                  v                 v
       DONE <──────────────┴────────── FORCED_SHRINK
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from sizefit.fit_size.codec import Codec, JpegCodec, SourceImage
from sizefit.fit_size.errors import DecodeError, InvalidRangeError
from sizefit.models.search import BisectionStep, SearchConfig, SearchResult, SearchStatus, SizeRange
from sizefit.utils.size import estimate_kb

logger = logging.getLogger(__name__)


class SearchState(str, Enum):
    BASELINE = "baseline"
    ENLARGE = "enlarge"
    QUALITY_SEARCH = "quality_search"
    DIMENSION_RESET = "dimension_reset"
    FORCED_SHRINK = "forced_shrink"
    DONE = "done"


@dataclass
class Candidate:
    """One encoding attempt."""
    width: int
    height: int
    quality: float
    data: bytes
    size_kb: int


def scale_dimensions(width: int, height: int, scale: float) -> tuple[int, int]:
    """Scale and floor both dimensions, never below one pixel."""
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


class SizeSearch:
    """A single search run. Not reusable; build one per image."""

    def __init__(self, source: SourceImage, size_range: SizeRange, codec: Codec, config: SearchConfig):
        self.source = source
        self.size_range = size_range
        self.codec = codec
        self.config = config

        # Dimensions used by the quality search, shrunk by dimension resets
        self.width = source.width
        self.height = source.height

        self.q_low = config.quality_floor
        self.q_high = config.max_quality
        self.quality = config.initial_quality
        self.epoch = 0
        self.iterations = 0

        self.enlarge_steps = 0
        self.shrink_steps = 0
        self.encode_calls = 0

        self.candidate: Optional[Candidate] = None
        self.largest: Optional[Candidate] = None
        self.smallest: Optional[Candidate] = None
        self.trace: List[BisectionStep] = []

        self.handlers: Dict[SearchState, Callable[[], SearchState]] = {
            SearchState.BASELINE: self.baseline,
            SearchState.ENLARGE: self.enlarge,
            SearchState.QUALITY_SEARCH: self.quality_search,
            SearchState.DIMENSION_RESET: self.dimension_reset,
            SearchState.FORCED_SHRINK: self.forced_shrink,
        }

    def run(self) -> SearchResult:
        state = SearchState.BASELINE
        while state != SearchState.DONE:
            next_state = self.handlers[state]()
            if next_state != state:
                logger.debug(f"{state.value} -> {next_state.value}")
            state = next_state
        return self.result()

    def encode(self, width: int, height: int, quality: float) -> Candidate:
        data = self.codec.encode(self.source, width, height, quality)
        self.encode_calls += 1
        return Candidate(width, height, quality, data, estimate_kb(data))

    def start_quality_search(self) -> SearchState:
        self.q_low = self.config.quality_floor
        self.q_high = self.config.max_quality
        self.quality = self.config.initial_quality
        return SearchState.QUALITY_SEARCH

    def baseline(self) -> SearchState:
        self.candidate = self.encode(self.source.width, self.source.height, self.config.max_quality)
        self.largest = self.candidate
        logger.info(
            f"Baseline: {self.candidate.size_kb}KB at {self.source.width}x{self.source.height}, "
            f"target {self.size_range.min_kb}-{self.size_range.max_kb}KB"
        )

        status = self.size_range.classify(self.candidate.size_kb)
        if status == SearchStatus.BELOW_MIN:
            return SearchState.ENLARGE
        if status == SearchStatus.ABOVE_MAX:
            return self.start_quality_search()
        return SearchState.DONE

    def enlarge(self) -> SearchState:
        if self.enlarge_steps >= self.config.upscale_steps:
            logger.info(f"Reached x{self.config.max_upscale:.1f} enlargement limit below minimum size")
            self.candidate = self.largest
            return SearchState.DONE

        self.enlarge_steps += 1
        scale = round(1.0 + self.enlarge_steps * self.config.upscale_step, 6)
        width, height = scale_dimensions(self.source.width, self.source.height, scale)
        candidate = self.encode(width, height, self.config.max_quality)
        logger.debug(f"Enlarge x{scale:.2f}: {width}x{height} -> {candidate.size_kb}KB")

        if candidate.size_kb >= self.largest.size_kb:
            self.largest = candidate

        if candidate.size_kb >= self.size_range.min_kb:
            self.candidate = candidate
            if candidate.size_kb > self.size_range.max_kb:
                # Overshot the other bound: bisect quality at the enlarged size
                self.width, self.height = width, height
                return self.start_quality_search()
            return SearchState.DONE
        return SearchState.ENLARGE

    def quality_search(self) -> SearchState:
        candidate = self.encode(self.width, self.height, self.quality)
        self.candidate = candidate
        self.iterations += 1
        self.trace.append(BisectionStep(
            iteration=self.iterations,
            epoch=self.epoch,
            width=self.width,
            height=self.height,
            quality=self.quality,
            q_low=self.q_low,
            q_high=self.q_high,
            size_kb=candidate.size_kb,
        ))
        logger.debug(
            f"Iteration {self.iterations}: q={self.quality:.4f} [{self.q_low:.4f}, {self.q_high:.4f}] "
            f"{self.width}x{self.height} -> {candidate.size_kb}KB"
        )

        status = self.size_range.classify(candidate.size_kb)
        if status == SearchStatus.WITHIN_RANGE:
            return SearchState.DONE

        if status == SearchStatus.ABOVE_MAX:
            self.q_high = self.quality
            self.quality = (self.q_low + self.quality) / 2
        else:
            self.q_low = self.quality
            self.quality = (self.quality + self.q_high) / 2

        if self.iterations >= self.config.max_iterations:
            if status == SearchStatus.ABOVE_MAX:
                return SearchState.FORCED_SHRINK
            return SearchState.DONE

        if status == SearchStatus.ABOVE_MAX and self.iterations > self.config.stuck_threshold:
            return SearchState.DIMENSION_RESET
        return SearchState.QUALITY_SEARCH

    def dimension_reset(self) -> SearchState:
        self.width, self.height = scale_dimensions(self.width, self.height, self.config.dimension_reset_factor)
        self.q_low = self.config.reset_quality_low
        self.q_high = self.config.reset_quality_high
        self.quality = self.config.reset_quality
        self.epoch += 1
        logger.debug(f"Quality alone is not enough, retrying at {self.width}x{self.height}")
        return SearchState.QUALITY_SEARCH

    def forced_shrink(self) -> SearchState:
        if self.shrink_steps >= self.config.shrink_steps:
            logger.info(f"Reached {self.config.min_shrink_scale:.0%} shrink limit above maximum size")
            self.candidate = self.smallest or self.candidate
            return SearchState.DONE

        self.shrink_steps += 1
        scale = round(1.0 - self.shrink_steps * self.config.shrink_step, 6)
        width, height = scale_dimensions(self.source.width, self.source.height, scale)
        candidate = self.encode(width, height, self.config.forced_quality)
        logger.debug(f"Forced shrink x{scale:.2f}: {width}x{height} -> {candidate.size_kb}KB")

        if self.smallest is None or candidate.size_kb <= self.smallest.size_kb:
            self.smallest = candidate

        if candidate.size_kb <= self.size_range.max_kb:
            self.candidate = candidate
            return SearchState.DONE
        return SearchState.FORCED_SHRINK

    def result(self) -> SearchResult:
        candidate = self.candidate
        return SearchResult(
            data=candidate.data,
            size_kb=candidate.size_kb,
            status=self.size_range.classify(candidate.size_kb),
            width=candidate.width,
            height=candidate.height,
            quality=candidate.quality,
            size_range=self.size_range,
            encode_calls=self.encode_calls,
            quality_iterations=self.iterations,
            trace=self.trace,
        )


def fit_to_range(
    data: bytes,
    size_range: SizeRange,
    codec: Optional[Codec] = None,
    config: Optional[SearchConfig] = None,
    content_type: Optional[str] = None,
) -> SearchResult:
    """Re-encode an image so its size falls inside ``size_range``.

    Args:
        data: Encoded input image.
        size_range: Target interval in KB.
        codec: Codec to decode and encode with, JpegCodec by default.
        config: Search constants, SearchConfig() by default.
        content_type: Declared MIME type of ``data``, if known.

    Returns:
        The final candidate. When the range cannot be reached, the status says
        so and the result still carries the best encoding found.

    Raises:
        InvalidRangeError: If ``min_kb >= max_kb``. No codec work is done.
        DecodeError: If the input is not a decodable image.
    """
    if size_range.min_kb >= size_range.max_kb:
        raise InvalidRangeError(size_range.min_kb, size_range.max_kb)
    if content_type is not None and not content_type.startswith("image/"):
        raise DecodeError(f"Please upload an image file (got {content_type})")
    if not data:
        raise DecodeError("Input is empty")

    codec = codec or JpegCodec()
    config = config or SearchConfig()

    source = codec.decode(data)
    result = SizeSearch(source, size_range, codec, config).run()

    logger.info(
        f"Result: {result.size_kb}KB at {result.width}x{result.height}, "
        f"quality {result.quality:.3f} ({result.status.value}, {result.encode_calls} encodes)"
    )
    return result
