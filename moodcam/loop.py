# moodcam/loop.py
"""
Detection loop.

DetectionSession owns everything one camera session needs: model readiness,
the polling timer, the tick sequence counter and the latest UI state.

Ticks fire on a fixed wall-clock cadence (DETECT_INTERVAL) regardless of how
long inference takes, so inferences can overlap. Every tick is numbered when
issued; a result is applied only if it is newer than the last applied one and
was issued after the last stop(). Older or post-stop results are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Protocol, Set, Tuple

import numpy as np

from moodcam.camera import Camera
from moodcam.config import Settings
from moodcam.expressions import derive_ui_state, initial_state, resize_detections
from moodcam.loader import ModelLoader, ModelLoadError
from moodcam.models import Detection, SessionState, SessionStatus, TickResult, UIState

logger = logging.getLogger(__name__)

Listener = Callable[[TickResult], None]


class Canvas(Protocol):
    def update(self, result: TickResult) -> None: ...


class DetectionSession:
    """Polls the camera, runs inference and hands each result to the canvas."""

    def __init__(self, settings: Settings, camera: Camera, loader: Optional[ModelLoader] = None):
        self.s = settings
        self.camera = camera
        self.loader = loader or ModelLoader(settings)
        self.model = None
        self.ready = False
        self.load_error: Optional[str] = None
        self.state = SessionState.UNINITIALIZED
        self.ui_state: UIState = initial_state(settings)
        self.detections: List[Detection] = []
        self.canvas: Optional[Canvas] = None
        self.started_at: Optional[float] = None

        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        self._issued_seq = 0
        self._applied_seq = 0
        self._stale_upto = 0  # results with seq <= this were issued before stop()

    # ---- models ----
    async def load_models(self, model_base_url: Optional[str] = None) -> bool:
        """Load the models once; on failure log, keep the error and stay not-ready."""
        if self.ready:
            return True
        if self.state == SessionState.UNINITIALIZED:
            self.state = SessionState.MODELS_LOADING
        try:
            model = await self.loader.load(model_base_url or self.s.MODEL_BASE_URL)
        except ModelLoadError as e:
            self.load_error = str(e)
            logger.exception("[loop] model loading failed; detection stays disabled")
            return False
        self.model = model
        self.ready = True
        if self.running:
            self.state = SessionState.DETECTING
        elif self.state != SessionState.STOPPED:
            self.state = SessionState.READY
        return True

    # ---- wiring ----
    def attach_canvas(self, canvas: Canvas) -> None:
        self.canvas = canvas

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    # ---- lifecycle ----
    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> asyncio.Task:
        """Start polling; when already running, return the existing timer."""
        if self.running:
            return self._timer
        logger.info(f"[loop] starting detection every {self.s.DETECT_INTERVAL}s")
        # Detecting only once ticks can run; until then the models are still loading
        self.state = SessionState.DETECTING if self.ready else SessionState.MODELS_LOADING
        self.started_at = time.time()
        self._timer = asyncio.get_running_loop().create_task(self._run())
        return self._timer

    def on_stream_ready(self) -> asyncio.Task:
        logger.info("[loop] camera stream ready")
        return self.start()

    def stop(self) -> None:
        """Cancel the timer; results still in flight will be discarded."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info("[loop] detection stopped")
        self._stale_upto = self._issued_seq
        self.state = SessionState.STOPPED

    async def aclose(self) -> None:
        self.stop()
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self.state,
            models_ready=self.ready,
            load_error=self.load_error,
            running=self.running,
            started_at=self.started_at,
            last_seq=self._applied_seq,
            ui=self.ui_state,
        )

    # ---- ticks ----
    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_t = loop.time()
        while True:
            next_t += self.s.DETECT_INTERVAL
            await asyncio.sleep(max(0.0, next_t - loop.time()))
            task = loop.create_task(self.tick())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    def _can_tick(self) -> bool:
        if self.state == SessionState.STOPPED:
            return False
        return self.camera.is_open and self.canvas is not None and self.ready

    def _capture_and_detect(self) -> Tuple[List[Detection], Tuple[int, int]]:
        frame: np.ndarray = self.camera.read()
        h, w = frame.shape[:2]
        return self.model.detect(frame), (w, h)

    async def tick(self) -> Optional[TickResult]:
        """
        One guarded iteration: capture, infer, derive UI state, draw.

        Returns the applied result, or None when skipped or discarded.
        """
        if not self._can_tick():
            logger.debug("[loop] tick skipped (camera/canvas/models not ready)")
            return None

        self._issued_seq += 1
        seq = self._issued_seq
        try:
            detections, frame_size = await asyncio.to_thread(self._capture_and_detect)
        except Exception:
            logger.exception(f"[loop] tick={seq} inference failed; treating as no face")
            detections, frame_size = [], self.s.display_size

        if seq <= self._applied_seq or seq <= self._stale_upto:
            logger.debug(f"[loop] tick={seq} discarded (applied={self._applied_seq} stale_upto={self._stale_upto})")
            return None

        ui, draw = derive_ui_state(detections, self.s)
        result = TickResult(
            seq=seq,
            ts=time.time(),
            ui=ui,
            detections=resize_detections(draw, frame_size, self.s.display_size),
        )
        self._apply(result)
        return result

    def _apply(self, result: TickResult) -> None:
        self._applied_seq = result.seq
        self.ui_state = result.ui
        self.detections = result.detections
        logger.debug(f"[loop] tick={result.seq} label={result.ui.displayed_label!r} faces={len(result.detections)}")
        if self.canvas is not None:
            try:
                self.canvas.update(result)
            except Exception:
                logger.exception("[loop] canvas update failed")
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("[loop] listener failed")
