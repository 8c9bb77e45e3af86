"""
Face detection, landmarks and expression classification.

FaceExpressionModel bundles the three loaded networks behind a single
detect(frame) call:
- OpenCV Haar cascade for face boxes
- MediaPipe FaceLandmarker for landmark points on each face crop
- DeepFace emotion network for expression probabilities on each face crop

mediapipe and deepface are imported lazily so tests can monkeypatch them.
"""
from __future__ import annotations
from typing import Any, Dict, List
import logging

import cv2
import numpy as np

from moodcam.expressions import normalize_expressions
from moodcam.models import Detection, Point, Region

logger = logging.getLogger(__name__)

# Landmark crops are padded so the landmarker sees the whole head
CROP_PADDING = 0.25


class DeepFaceExpressionNet:
    """Expression probabilities for an already-cropped face."""

    def predict(self, chip: np.ndarray) -> Dict[str, float]:
        from deepface import DeepFace

        res = DeepFace.analyze(
            chip,
            actions=["emotion"],
            enforce_detection=False,
            detector_backend="skip",
        )
        res = res if isinstance(res, list) else [res]
        r0 = res[0] if res else {}
        return normalize_expressions((r0 or {}).get("emotion"))


class FaceExpressionModel:
    """Black box exposing detect(frame) -> list[Detection]."""

    def __init__(self, detector: Any, landmarker: Any, expression_net: DeepFaceExpressionNet,
                 min_face_size: int = 40):
        self.detector = detector
        self.landmarker = landmarker
        self.expression_net = expression_net
        self.min_face_size = int(min_face_size)

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """
        Run detection + landmarks + expressions on a BGR frame.

        Faces are returned largest first, so the first detection is the most
        prominent face in view.
        """
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        boxes = self.detector.detectMultiScale(
            gray, scaleFactor=1.1, minNeighbors=5,
            minSize=(self.min_face_size, self.min_face_size),
        )
        boxes = sorted((tuple(int(v) for v in b) for b in boxes),
                       key=lambda b: b[2] * b[3], reverse=True)
        logger.debug(f"[model] faces_detected={len(boxes)}")

        H, W = frame.shape[:2]
        detections: List[Detection] = []
        for (x, y, w, h) in boxes:
            # clamp to image bounds
            x = max(0, min(x, W - 1)); y = max(0, min(y, H - 1))
            w = max(1, min(w, W - x)); h = max(1, min(h, H - y))
            chip = frame[y:y+h, x:x+w]
            detections.append(Detection(
                region=Region(x=x, y=y, w=w, h=h),
                landmarks=self._landmarks(frame, x, y, w, h),
                expressions=self.expression_net.predict(chip),
            ))
        return detections

    def _landmarks(self, frame: np.ndarray, x: int, y: int, w: int, h: int) -> List[Point]:
        import mediapipe as mp

        H, W = frame.shape[:2]
        px, py = int(w * CROP_PADDING), int(h * CROP_PADDING)
        x0, y0 = max(0, x - px), max(0, y - py)
        x1, y1 = min(W, x + w + px), min(H, y + h + py)
        crop = frame[y0:y1, x0:x1]
        if crop.size == 0:
            return []

        rgb = np.ascontiguousarray(cv2.cvtColor(crop, cv2.COLOR_BGR2RGB))
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        result = self.landmarker.detect(image)
        faces = getattr(result, "face_landmarks", None) or []
        if not faces:
            return []
        cw, ch = x1 - x0, y1 - y0
        return [Point(x=x0 + lm.x * cw, y=y0 + lm.y * ch) for lm in faces[0]]
