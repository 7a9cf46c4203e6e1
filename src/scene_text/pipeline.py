"""
Frame orchestrator for scene text spotting

Per frame: detector -> region decoding -> optional area cap -> rectified
crop per region -> recognizer -> CTC decoding -> confidence filtering.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Tuple

import numpy as np

from .ocr.config import ConfigurationError, PipelineConfig
from .ocr.geometry import (
    SENTINEL_REGION,
    OrientedRegion,
    clip_points,
    rectify_region,
)
from .ocr.postprocess import (
    CTCGreedyDecode,
    DecodedText,
    PixelLinkPostProcess,
    filter_by_confidence,
)

logger = logging.getLogger(__name__)


class Detector(Protocol):
    def infer(self, image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        ...


class Recognizer(Protocol):
    input_size: Tuple[int, int]

    def infer(self, crop: np.ndarray) -> np.ndarray:
        ...


def format_region_line(points: np.ndarray, text: Optional[str] = None) -> str:
    """One CSV record: integer corner coordinates, then text if recognizing."""
    coords = ",".join(f"{int(x)},{int(y)}" for x, y in np.asarray(points).reshape(-1, 2))
    if text is None:
        return coords
    return f"{coords},{text}"


@dataclass
class RegionResult:
    """Output record of a single region."""
    points: np.ndarray  # (N, 2) int corners clamped to the image
    anchor_index: int
    text: str = ""
    confidence: float = 1.0
    region: Optional[OrientedRegion] = None  # None for the whole-frame fallback

    @property
    def anchor_point(self) -> Tuple[int, int]:
        x, y = self.points[self.anchor_index]
        return int(x), int(y)


@dataclass
class FrameResult:
    """All region records of a frame, in output order."""
    regions: List[RegionResult]
    recognition_enabled: bool
    image_size: Tuple[int, int]

    @property
    def num_found(self) -> int:
        if not self.recognition_enabled:
            return len(self.regions)
        return sum(1 for r in self.regions if r.text)

    def lines(self) -> List[str]:
        return [
            format_region_line(r.points, r.text if self.recognition_enabled else None)
            for r in self.regions
        ]


@dataclass
class RunStats:
    """Timing and counters accumulated over one run."""
    frames: int = 0
    regions_found: int = 0
    detection_calls: int = 0
    recognition_calls: int = 0
    detection_time: float = 0.0
    detection_postproc_time: float = 0.0
    crop_time: float = 0.0
    recognition_time: float = 0.0
    recognition_postproc_time: float = 0.0
    avg_frame_time: float = 0.0  # exponentially smoothed, seconds
    decay: float = field(default=0.8, repr=False)

    def record_frame(self, elapsed: float, found: int):
        self.frames += 1
        self.regions_found += found
        if self.avg_frame_time == 0:
            self.avg_frame_time = elapsed
        else:
            self.avg_frame_time = self.avg_frame_time * self.decay + (1.0 - self.decay) * elapsed

    def add_timings(self, other: "RunStats"):
        """Add the call counters and stage timings of other (frame counts are left alone)."""
        self.detection_calls += other.detection_calls
        self.recognition_calls += other.recognition_calls
        self.detection_time += other.detection_time
        self.detection_postproc_time += other.detection_postproc_time
        self.crop_time += other.crop_time
        self.recognition_time += other.recognition_time
        self.recognition_postproc_time += other.recognition_postproc_time

    @property
    def fps(self) -> float:
        return 1.0 / self.avg_frame_time if self.avg_frame_time > 0 else 0.0

    def summary(self) -> str:
        lines = [f"frames: {self.frames}  regions found: {self.regions_found}  fps: {self.fps:.1f}"]
        if self.detection_calls:
            lines.append(
                "text detection inference (ms): %.2f  postprocessing (ms): %.2f" % (
                    1000 * self.detection_time / self.detection_calls,
                    1000 * self.detection_postproc_time / self.detection_calls,
                )
            )
        if self.recognition_calls:
            lines.append(
                "text recognition inference (ms): %.2f  postprocessing (ms): %.3f  crop (ms): %.3f" % (
                    1000 * self.recognition_time / self.recognition_calls,
                    1000 * self.recognition_postproc_time / self.recognition_calls,
                    1000 * self.crop_time / self.recognition_calls,
                )
            )
        return "\n".join(lines)


def _should_stop(stop) -> bool:
    if stop is None:
        return False
    if hasattr(stop, "is_set"):
        return stop.is_set()
    return bool(stop())


class TextSpotter:
    """
    Complete text spotting over a stream of frames

    Either collaborator may be absent, not both:
    - without a detector the frame (or a centered window of it) is one region
    - without a recognizer regions are reported without text

    Usage:
        spotter = TextSpotter(detector, recognizer, PipelineConfig(alphabet="abc"))
        frame = spotter.process_frame(image)
        for line in frame.lines():
            print(line)
    """

    def __init__(
        self,
        detector: Optional[Detector] = None,
        recognizer: Optional[Recognizer] = None,
        config: Optional[PipelineConfig] = None,
    ):
        if detector is None and recognizer is None:
            raise ConfigurationError("Neither text detector nor text recognizer is configured")
        if config is None:
            config = PipelineConfig()

        self.detector = detector
        self.recognizer = recognizer
        self.config = config

        self.postprocess_op = PixelLinkPostProcess(
            text_threshold=config.text_threshold,
            link_threshold=config.link_threshold,
            neighbors=config.neighbors,
            box_method=config.box_method,
            min_area=config.min_area,
            min_height=config.min_height,
        )
        self.decoder = CTCGreedyDecode(config.alphabet)

        if recognizer is not None:
            self.crop_size = tuple(recognizer.input_size)
        else:
            self.crop_size = tuple(config.crop_size) if config.crop_size else None

    @property
    def recognition_enabled(self) -> bool:
        return self.recognizer is not None

    def detect(self, image: np.ndarray, stats: Optional[RunStats] = None) -> List[OrientedRegion]:
        """Regions of a frame, or the whole-frame sentinel without a detector."""
        if self.detector is None:
            return [SENTINEL_REGION]

        h, w = image.shape[:2]
        begin = time.perf_counter()
        text_scores, link_scores = self.detector.infer(image)
        middle = time.perf_counter()
        regions = self.postprocess_op(text_scores, link_scores, (w, h))
        end = time.perf_counter()

        if stats is not None:
            stats.detection_calls += 1
            stats.detection_time += middle - begin
            stats.detection_postproc_time += end - middle
        return regions

    def limit_regions(self, regions: List[OrientedRegion]) -> List[OrientedRegion]:
        """Keep the largest max_regions regions, ties in detection order."""
        max_regions = self.config.max_regions
        if max_regions is None or max_regions < 0 or len(regions) <= max_regions:
            return regions
        ranked = sorted(regions, key=lambda r: r.area, reverse=True)
        return ranked[:max_regions]

    def process_frame(self, image: np.ndarray, stats: Optional[RunStats] = None) -> FrameResult:
        """Spot text in one frame.

        Records are assembled only once every region succeeded, so a failing
        collaborator leaves no partial frame output behind.

        Args:
            image: Frame in BGR
            stats: Optional run statistics, updated only when the frame succeeds

        Returns:
            FrameResult with one record per region
        """
        h, w = image.shape[:2]
        frame_stats = RunStats()
        regions = self.limit_regions(self.detect(image, frame_stats))

        records = [self._process_region(image, region, frame_stats) for region in regions]
        if stats is not None:
            stats.add_timings(frame_stats)
        frame = FrameResult(records, self.recognition_enabled, (w, h))
        logger.debug("Frame %dx%d: %d regions, %d found", w, h, len(records), frame.num_found)
        return frame

    def _process_region(
        self,
        image: np.ndarray,
        region: OrientedRegion,
        stats: Optional[RunStats],
    ) -> RegionResult:
        h, w = image.shape[:2]
        begin = time.perf_counter()

        # The fallback window goes to the recognizer at its own size
        target_size = None if region.is_degenerate else self.crop_size
        crop, points, anchor_index = rectify_region(
            image,
            region,
            target_size,
            center_crop=self.config.center_crop,
            center_crop_fraction=self.config.center_crop_fraction,
        )
        if region.is_degenerate:
            region = None

        decoded = DecodedText("", 1.0)
        if self.recognizer is not None:
            middle = time.perf_counter()
            probs = self.recognizer.infer(crop)
            after_infer = time.perf_counter()
            decoded = filter_by_confidence(self.decoder(probs), self.config.min_confidence)
            end = time.perf_counter()

            if stats is not None:
                stats.recognition_calls += 1
                stats.crop_time += middle - begin
                stats.recognition_time += after_infer - middle
                stats.recognition_postproc_time += end - after_infer

        return RegionResult(
            points=clip_points(points, (w, h)),
            anchor_index=anchor_index,
            text=decoded.text,
            confidence=decoded.confidence,
            region=region,
        )

    def run(
        self,
        source,
        stats: Optional[RunStats] = None,
        stop=None,
        on_frame: Optional[Callable[[np.ndarray, FrameResult, RunStats], None]] = None,
    ) -> RunStats:
        """Process frames until the source ends or stop is requested.

        Args:
            source: Object whose next() returns a frame or None at the end
            stats: Statistics to continue from (fresh if None)
            stop: threading.Event or callable checked between frames
            on_frame: Callback receiving (image, frame result, stats)

        Returns:
            The run statistics
        """
        if stats is None:
            stats = RunStats()

        while not _should_stop(stop):
            image = source.next()
            if image is None:
                break

            begin = time.perf_counter()
            frame = self.process_frame(image, stats)
            stats.record_frame(time.perf_counter() - begin, frame.num_found)

            if on_frame is not None:
                on_frame(image, frame, stats)

        logger.info("Processed %d frames", stats.frames)
        return stats

    def __repr__(self):
        return (
            f"TextSpotter(\n"
            f"  detector={self.detector},\n"
            f"  recognizer={self.recognizer}\n"
            f")"
        )
