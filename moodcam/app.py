"""
Runtime glue: one camera, one detection session, one presenter.

MoodDetector is what the HTTP API and the local window drive:
- load_models(): fetch artifacts, then flip readiness (once)
- open_camera(): open the device; its "stream ready" starts detection
- close_camera(): stop detection and release the device
- snapshot(): current video frame composed into the full panel
"""
from __future__ import annotations
from typing import Optional
import asyncio
import logging

import cv2
import numpy as np

from moodcam.camera import Camera
from moodcam.config import Settings
from moodcam.loop import DetectionSession
from moodcam.presenter import Presenter

logger = logging.getLogger(__name__)

WINDOW_NAME = "Mood Detector (q to quit)"


class MoodDetector:
    def __init__(self, settings: Settings):
        self.s = settings
        self.camera = Camera(settings)
        self.presenter = Presenter(settings)
        self.session = DetectionSession(settings, self.camera)
        self.session.attach_canvas(self.presenter)

    async def load_models(self) -> bool:
        ok = await self.session.load_models()
        self.presenter.set_model_status(self.session.ready, self.session.load_error)
        return ok

    async def open_camera(self) -> None:
        """Raises CameraUnavailableError when the device cannot be opened."""
        await asyncio.to_thread(self.camera.open)
        self.session.on_stream_ready()

    async def close_camera(self) -> None:
        self.session.stop()
        await asyncio.to_thread(self.camera.release)

    async def snapshot(self) -> np.ndarray:
        frame: Optional[np.ndarray] = None
        if self.camera.is_open:
            try:
                frame = await asyncio.to_thread(self.camera.read)
            except RuntimeError as e:
                logger.debug(f"[app] no frame for snapshot: {e}")
        return self.presenter.render(frame)

    async def shutdown(self) -> None:
        await self.session.aclose()
        self.camera.release()


async def run_window(settings: Settings, camera_index: Optional[int] = None) -> None:
    """
    Local OpenCV window showing the composed panel. Press 'q' to quit.

    Models load in the background; detection ticks stay no-ops until they are ready.
    """
    if camera_index is not None:
        settings = settings.model_copy(update={"CAMERA_INDEX": camera_index})
    app = MoodDetector(settings)
    loading = asyncio.create_task(app.load_models())
    frame_dt = 1.0 / max(1.0, settings.STREAM_FPS)
    try:
        await app.open_camera()
        while True:
            panel = await app.snapshot()
            cv2.imshow(WINDOW_NAME, panel)
            if (cv2.waitKey(1) & 0xFF) == ord("q"):
                break
            await asyncio.sleep(frame_dt)
    finally:
        loading.cancel()
        await asyncio.gather(loading, return_exceptions=True)
        await app.shutdown()
        cv2.destroyAllWindows()
