"""
Local webcam capture (OpenCV).
"""
from __future__ import annotations
from typing import Optional
import logging
import threading

import cv2
import numpy as np

from moodcam.config import Settings

logger = logging.getLogger(__name__)


class CameraUnavailableError(RuntimeError):
    """The capture device could not be opened."""


class Camera:
    """Default user-facing camera at a fixed resolution; reads are serialized."""

    def __init__(self, settings: Settings):
        self.s = settings
        self._cap: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def open(self) -> None:
        # Check and assignment share the lock so concurrent opens create one device
        with self._lock:
            if self.is_open:
                return
            idx = self.s.CAMERA_INDEX
            cap = cv2.VideoCapture(idx)
            if not cap.isOpened():
                cap.release()
                raise CameraUnavailableError(f"Could not open camera index {idx}")
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.s.VIDEO_WIDTH)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.s.VIDEO_HEIGHT)
            self._cap = cap
        logger.info(f"[camera] opened index={idx} size={self.s.VIDEO_WIDTH}x{self.s.VIDEO_HEIGHT}")

    def read(self) -> np.ndarray:
        """
        Grab the current frame.

        Raises:
            RuntimeError: camera closed or no frame available.
        """
        with self._lock:
            if self._cap is None:
                raise RuntimeError("Camera is not open")
            ok, frame = self._cap.read()
        if not ok or frame is None:
            raise RuntimeError("Camera returned no frame")
        return frame

    def release(self) -> None:
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.info("[camera] released")
