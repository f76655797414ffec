"""
Loop driver for the alignment capture pipeline.

One tick runs Preprocessor -> Detector -> OutputDecoder -> CoordinateMapper
-> CaptureSession for a single frame. At most one tick is ever in flight:
the pull loop only asks for the next frame once the current tick has
resolved, and push-style callers that submit() while a tick is running are
turned away.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from inference.backend import Detector, ModelSpec, RawOutput
from inference.decoder import OutputDecoder
from inference.preprocess import Preprocessor, PreprocessResult
from models.capture_event import CaptureEvent
from models.config import Config
from models.detection import Detection
from models.frame import FrameData
from observation.base import ObservationSource
from pipeline.stages.mapping import CoordinateMapper, MappingStageConfig
from runtime.errors import (
    CapabilityUnavailable,
    DecodeError,
    InferenceError,
    ReadinessError,
)
from runtime.session import CaptureSession


@dataclass
class LoopDriverConfig:
    """
    Configuration for the loop driver.

    Attributes:
        max_ticks_per_second: Throttle cap for run(); 0 disables throttling.
        stop_when_complete: Stop run() once every capture goal has fired.
        heartbeat_every: INFO heartbeat every N ticks (0 disables).
        display_size: Destination (width, height); None uses the frame size.
    """
    max_ticks_per_second: float = 15.0
    stop_when_complete: bool = True
    heartbeat_every: int = 15
    display_size: Optional[Tuple[int, int]] = None


@dataclass
class LoopStats:
    """Runtime statistics for the loop."""
    tick_count: int = 0
    skipped_ticks: int = 0
    decode_errors: int = 0
    inference_errors: int = 0
    tick_errors: int = 0
    busy_rejections: int = 0
    fire_count: int = 0
    start_time: float = field(default_factory=time.time)
    last_tick_ts: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "tick_count": self.tick_count,
            "skipped_ticks": self.skipped_ticks,
            "decode_errors": self.decode_errors,
            "inference_errors": self.inference_errors,
            "tick_errors": self.tick_errors,
            "busy_rejections": self.busy_rejections,
            "fire_count": self.fire_count,
            "start_time": self.start_time,
            "last_tick_ts": self.last_tick_ts,
        }


@dataclass
class TickResult:
    """Outcome of one tick."""
    tick_index: int
    detections: List[Detection] = field(default_factory=list)
    event: Optional[CaptureEvent] = None
    skipped: Optional[str] = None


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class LoopDriver:
    """
    Schedules ticks and wires the pipeline stages together.

    Example:
        driver = create_driver_from_config(config, session, source, detector)
        driver.run()
    """

    def __init__(
        self,
        source: Optional[ObservationSource],
        detector: Optional[Detector],
        preprocessor: Preprocessor,
        decoder: OutputDecoder,
        mapper: CoordinateMapper,
        session: CaptureSession,
        config: Optional[LoopDriverConfig] = None,
        clock: Callable[[], float] = _monotonic_ms,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.detector = detector
        self.preprocessor = preprocessor
        self.decoder = decoder
        self.mapper = mapper
        self.session = session
        self.config = config or LoopDriverConfig()
        self.stats = LoopStats()
        self._clock = clock
        self._sleep = sleep
        self._running = False
        self._in_flight = threading.Lock()
        self._callbacks: List[Callable[[FrameData, TickResult], None]] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def busy(self) -> bool:
        """True while a tick is in flight."""
        return self._in_flight.locked()

    def add_callback(self, callback: Callable[[FrameData, TickResult], None]) -> None:
        """
        Add a callback to be called after each tick.

        Args:
            callback: Function taking (frame_data, tick_result).
        """
        self._callbacks.append(callback)

    def submit(self, frame_data: FrameData) -> Optional[TickResult]:
        """
        Run one tick for a frame, unless a tick is already in flight.

        Returns None (and drops the frame) when busy.
        """
        if not self._in_flight.acquire(blocking=False):
            self.stats.busy_rejections += 1
            return None
        try:
            result = self._tick(frame_data)
        finally:
            self._in_flight.release()

        for callback in self._callbacks:
            try:
                callback(frame_data, result)
            except Exception as e:
                logging.warning(f"Callback error: {e}")
        return result

    def run(self) -> None:
        """
        Pull frames from the source until stopped, exhausted or complete.

        Raises:
            CapabilityUnavailable: If the source or detector is missing or
                the source cannot be opened. The loop does not start.
        """
        if self.source is None:
            raise CapabilityUnavailable("No frame source configured")
        if self.detector is None:
            raise CapabilityUnavailable("No detector configured")
        try:
            self.source.open()
        except RuntimeError as e:
            raise CapabilityUnavailable(f"Frame source unavailable: {e}") from e

        self._running = True
        self.stats = LoopStats()
        logging.info(f"Loop started: source={self.source.source_id}")

        try:
            while self._running:
                started = self._clock()
                frame_data = self.source.read()

                if frame_data is None:
                    if self.source.exhausted:
                        logging.info("Frame source exhausted")
                        break
                    self._record_skip("frame not available")
                else:
                    self.submit(frame_data)
                    if self.config.stop_when_complete and self.session.is_done:
                        logging.info("All capture goals complete")
                        break

                self._throttle(started)
        except KeyboardInterrupt:
            logging.info("Loop interrupted by user")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the loop to stop after the current tick."""
        self._running = False

    def _tick(self, frame_data: FrameData) -> TickResult:
        now = self._clock()
        self.session.apply_pending_reset()
        self.stats.tick_count += 1
        self.stats.last_tick_ts = time.time()
        result = TickResult(tick_index=self.stats.tick_count)

        prepared: Optional[PreprocessResult] = None
        try:
            prepared = self.preprocessor.process(frame_data.frame)
            detections = self._detect(prepared)

            dest_w, dest_h = self.config.display_size or (prepared.frame_width, prepared.frame_height)
            x_ratio, y_ratio = prepared.ratios_for(dest_w, dest_h)
            result.detections = self.mapper.map_all(detections, dest_w, dest_h, x_ratio, y_ratio)

            self.session.report_guidance(result.detections)
            result.event = self.session.process(result.detections, now)
            if result.event is not None:
                self.stats.fire_count += 1
        except ReadinessError as e:
            result.skipped = f"not ready: {e}"
            self.stats.skipped_ticks += 1
            logging.warning(f"Tick {result.tick_index} skipped: {e}")
        except InferenceError as e:
            result.skipped = f"inference failed: {e}"
            self.stats.skipped_ticks += 1
            self.stats.inference_errors += 1
            logging.warning(f"Tick {result.tick_index} skipped: {e}")
        except Exception as e:
            result.skipped = f"tick error: {type(e).__name__}: {e}"
            self.stats.skipped_ticks += 1
            self.stats.tick_errors += 1
            logging.error(f"Tick {result.tick_index} failed: {type(e).__name__}: {e}")
        finally:
            if prepared is not None:
                prepared.release()

        self.session.log(self._summary(result))
        if self.config.heartbeat_every and result.tick_index % self.config.heartbeat_every == 0:
            logging.info(f"[detect] tick={result.tick_index} fires={self.stats.fire_count}")
        return result

    def _detect(self, prepared: PreprocessResult) -> List[Detection]:
        try:
            outputs = self.detector.infer(prepared.tensor)
        except Exception as e:
            raise InferenceError(f"{type(e).__name__}: {e}") from e

        try:
            return self.decoder.decode(RawOutput(outputs))
        except DecodeError as e:
            self.stats.decode_errors += 1
            logging.warning(f"Decode failed, treating tick as empty: {e}")
            return []

    def _summary(self, result: TickResult) -> str:
        if result.skipped:
            return f"[detect] tick={result.tick_index} skipped ({result.skipped})"
        labels = ", ".join(f"{d.label}({round(d.score * 100)}%)" for d in result.detections)
        snap = self.session.automaton.snapshot()
        msg = f"Rendered: {len(result.detections)} objects | {labels} | "
        if snap["done"]:
            msg += "all goals captured"
        else:
            msg += (
                f"goal={snap['armed_goal']} stable={snap['consecutive_stable_count']}"
                f"/{snap['required_stable_frames']}"
            )
        if result.event is not None:
            msg += f" | captured {result.event.goal_id}"
        return msg

    def _record_skip(self, reason: str) -> None:
        self.stats.skipped_ticks += 1
        logging.debug(f"Tick skipped: {reason}")
        self.session.log(f"[detect] skipped ({reason})")

    def _throttle(self, started_ms: float) -> None:
        if not self.config.max_ticks_per_second or self.config.max_ticks_per_second <= 0:
            return
        min_interval_ms = 1000.0 / self.config.max_ticks_per_second
        remaining = min_interval_ms - (self._clock() - started_ms)
        if remaining > 0:
            self._sleep(remaining / 1000.0)

    def _cleanup(self) -> None:
        self._running = False
        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")
        logging.info(
            f"Loop stopped: ticks={self.stats.tick_count} fires={self.stats.fire_count} "
            f"skipped={self.stats.skipped_ticks}"
        )


def create_driver_from_config(
    config: Config,
    session: CaptureSession,
    source: Optional[ObservationSource],
    detector: Optional[Detector],
    clock: Callable[[], float] = _monotonic_ms,
    sleep: Callable[[float], None] = time.sleep,
) -> LoopDriver:
    """
    Factory: wire the pipeline stages for a detector from typed config.

    Raises:
        CapabilityUnavailable: If the detector is missing or declares an
            unusable input shape.
    """
    if detector is None:
        raise CapabilityUnavailable("No detector configured")
    try:
        spec = ModelSpec.from_input_shape(detector.input_shape)
    except ValueError as e:
        raise CapabilityUnavailable(f"Detector input shape unusable: {e}") from e
    logging.info(
        f"Model spec: {spec.input_width}x{spec.input_height} "
        f"layout={spec.layout.value} batched={spec.batched}"
    )

    display = config.mapping.display_size
    driver_config = LoopDriverConfig(
        max_ticks_per_second=config.loop.max_ticks_per_second,
        stop_when_complete=config.loop.stop_when_complete,
        heartbeat_every=config.loop.heartbeat_every,
        display_size=tuple(display) if display else None,
    )
    return LoopDriver(
        source=source,
        detector=detector,
        preprocessor=Preprocessor(spec, swap_rb=config.model.swap_rb),
        decoder=OutputDecoder(config.model.labels, threshold=config.model.class_threshold),
        mapper=CoordinateMapper(
            MappingStageConfig(
                normalized_threshold=config.mapping.normalized_threshold,
                min_box_px=config.mapping.min_box_px,
            )
        ),
        session=session,
        config=driver_config,
        clock=clock,
        sleep=sleep,
    )
