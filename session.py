"""
Session Controller - owns the monitoring lifecycle.

Runs two independent timers on the asyncio loop (uptime every second,
analysis every three seconds), feeds each analysis result through the rule
engine and keeps the bounded violation log plus the session counters.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import replace
from enum import Enum
from typing import Optional

from analyzer import FrameAnalyzer
from config import MonitorConfig
from errors import CameraAccessDenied, CapabilityLost, CapabilityUnavailable, InferenceFailure
from logic import ViolationClassifier
from records import DebounceState, DetectionResult, SessionSnapshot, SessionStats, ViolationKind

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    MONITORING = "monitoring"
    STOPPED = "stopped"


class SessionController:
    def __init__(
        self,
        object_detector,
        face_landmarker,
        camera,
        config: Optional[MonitorConfig] = None,
        clock=time.monotonic,
        wall_clock=time.time,
    ):
        self.config = config or MonitorConfig()
        self.objects = object_detector
        self.faces = face_landmarker
        self.camera = camera
        self.analyzer = FrameAnalyzer(object_detector, face_landmarker, self.config.thresholds)
        self.classifier = ViolationClassifier(self.config.thresholds, step_seconds=self.config.debounce_step)
        self._clock = clock
        self._wall_clock = wall_clock

        self.state = ControllerState.IDLE
        self.objects_ready = False
        self.faces_ready = False
        self.error: Optional[str] = None

        self.stats = SessionStats()
        self.violations = deque(maxlen=self.config.thresholds.log_capacity)
        self.detection: Optional[DetectionResult] = None
        self.debounce = DebounceState()

        # Timers and the in-flight cycle
        self._uptime_task: Optional[asyncio.Task] = None
        self._analysis_task: Optional[asyncio.Task] = None
        self._first_cycle: Optional[asyncio.TimerHandle] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._starting = False
        self._loading = False
        self._started_at: Optional[float] = None
        self._run_id = 0

    # -- loading -------------------------------------------------------------

    @property
    def loading(self) -> bool:
        return self._loading

    async def load(self):
        """
        Load both models concurrently; READY once both report in.

        After a failed load the controller stays in LOADING and a later call
        retries only the models that are not ready yet. Calls made while a
        load is running are ignored.
        """
        if self._loading or self.state not in (ControllerState.IDLE, ControllerState.LOADING):
            return
        self._loading = True
        self.state = ControllerState.LOADING
        self.error = None
        logger.info("Loading perception models")

        async def _load(capability, flag):
            if getattr(self, flag):
                return
            try:
                await asyncio.to_thread(capability.load)
            except Exception as e:
                logger.error(f"Failed to load {type(capability).__name__}: {e}")
                self.error = "Failed to load AI models. Retrying on the next page refresh."
                return
            setattr(self, flag, True)
            logger.info(f"{type(capability).__name__} ready")

        try:
            await asyncio.gather(_load(self.objects, "objects_ready"), _load(self.faces, "faces_ready"))
        finally:
            self._loading = False
        if self.objects_ready and self.faces_ready:
            self.state = ControllerState.READY
            logger.info("All models loaded, ready to start")

    # -- start / stop --------------------------------------------------------

    async def start(self):
        """Open the camera and begin monitoring. A second start while one is opening is a no-op."""
        if self.state is ControllerState.MONITORING or self._starting:
            return
        if not (self.objects_ready and self.faces_ready) or self.state not in (
            ControllerState.READY,
            ControllerState.STOPPED,
        ):
            raise CapabilityUnavailable("AI models are still loading. Please wait...")

        # claimed before the first await so overlapping starts cannot both schedule timers
        self._starting = True
        try:
            await asyncio.to_thread(self.camera.open)
        except CameraAccessDenied as e:
            self.error = str(e)
            logger.warning(f"Start rejected: {e}")
            raise
        finally:
            self._starting = False

        self._run_id += 1
        self.stats = SessionStats()
        self.violations.clear()
        self.detection = None
        self.debounce = DebounceState()
        self.error = None
        self._started_at = self._clock()
        self.state = ControllerState.MONITORING

        loop = asyncio.get_running_loop()
        self._uptime_task = loop.create_task(self._uptime_loop())
        self._analysis_task = loop.create_task(self._analysis_loop())
        self._first_cycle = loop.call_later(self.config.initial_delay, self._schedule_cycle)
        logger.info("Monitoring started")

    def stop(self):
        if self.state is not ControllerState.MONITORING:
            return
        self._run_id += 1
        for task in (self._uptime_task, self._analysis_task):
            if task is not None:
                task.cancel()
        if self._first_cycle is not None:
            self._first_cycle.cancel()
        self._uptime_task = self._analysis_task = self._first_cycle = None

        self.debounce = DebounceState()
        self._started_at = None
        self.camera.release()
        self.state = ControllerState.STOPPED
        logger.info(f"Monitoring stopped after {self.stats.scans} scans, {self.stats.violations} violations")

    async def drain(self):
        """Wait for a cycle that is still running (its result may be discarded)."""
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    # -- timers --------------------------------------------------------------

    async def _uptime_loop(self):
        while True:
            await asyncio.sleep(self.config.uptime_interval)
            if self._started_at is not None:
                self.stats.uptime_seconds = max(self.stats.uptime_seconds, int(self._clock() - self._started_at))

    async def _analysis_loop(self):
        while True:
            await asyncio.sleep(self.config.analysis_interval)
            self._schedule_cycle()

    def _schedule_cycle(self):
        if self._in_flight or (self._cycle_task is not None and not self._cycle_task.done()):
            logger.debug("Previous analysis cycle still running, skipping tick")
            return
        self._cycle_task = asyncio.get_running_loop().create_task(self.run_cycle())

    # -- analysis ------------------------------------------------------------

    async def run_cycle(self) -> Optional[DetectionResult]:
        """One analysis pass. Returns None when skipped, failed or discarded."""
        if self.state is not ControllerState.MONITORING or self._in_flight:
            return None

        run_id = self._run_id
        self._in_flight = True
        try:
            frame = self.camera.read()
            if frame is None:
                raise InferenceFailure("Analysis failed: no video frame available")
            result = await self.analyzer.analyze(frame)
        except CapabilityLost as e:
            logger.error(f"Capability lost: {e}")
            if run_id == self._run_id:
                self.error = str(e)
                self.stop()
            return None
        except InferenceFailure as e:
            logger.warning(str(e))
            if run_id == self._run_id:
                self.error = str(e)
            return None
        finally:
            self._in_flight = False

        if run_id != self._run_id:
            logger.info("Discarding result of a cycle that finished after stop")
            return None

        events, self.debounce = self.classifier.classify(result, self.debounce, self._wall_clock())
        self.detection = result
        self.error = None
        self.stats.scans += 1
        if events:
            # newest first; a full deque drops from the old end
            self.violations.extendleft(reversed(events))
            self.stats.violations += len(events)
            self.stats.looking_away_events += sum(1 for e in events if e.kind is ViolationKind.LOOKING_AWAY)
        return result

    # -- presentation --------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state.value,
            stats=replace(self.stats),
            detection=self.detection,
            violations=tuple(self.violations),
            error=self.error,
            analyzing=self._in_flight,
            objects_ready=self.objects_ready,
            faces_ready=self.faces_ready,
            debounce=self.debounce,
            loading=self._loading,
        )
