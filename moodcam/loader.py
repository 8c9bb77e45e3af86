"""
Model artifact loading.

The three artifacts (face detector, landmark predictor, expression weights)
are fetched from a base location and initialized concurrently, each in a
worker thread. The base is either a local directory or an http(s) URL; remote
artifacts are downloaded once into MODEL_CACHE_DIR.
"""
from __future__ import annotations
from pathlib import Path
from typing import Any
import asyncio
import logging
import os
import shutil

import cv2
import numpy as np
import requests

from moodcam.config import Settings
from moodcam.model import DeepFaceExpressionNet, FaceExpressionModel

logger = logging.getLogger(__name__)

DETECTOR_ARTIFACT = "haarcascade_frontalface_default.xml"
LANDMARKS_ARTIFACT = "face_landmarker.task"
EXPRESSION_ARTIFACT = "facial_expression_model_weights.h5"


class ModelLoadError(RuntimeError):
    """A model artifact could not be fetched or initialized."""


def _is_remote(base: str) -> bool:
    return base.startswith("http://") or base.startswith("https://")


def _deepface_weights_dir() -> Path:
    # Same lookup DeepFace does before downloading its own weights
    home = os.getenv("DEEPFACE_HOME") or str(Path.home())
    return Path(home) / ".deepface" / "weights"


class ModelLoader:
    """Fetches and initializes the detector, landmarker and expression network."""

    def __init__(self, settings: Settings):
        self.s = settings
        self.cache_dir = Path(settings.MODEL_CACHE_DIR)

    # ---- artifact resolution ----
    def fetch(self, base: str, name: str) -> Path:
        """
        Resolve an artifact to a local file.

        Raises:
            FileNotFoundError: local base without the artifact.
            requests.HTTPError: remote base answered with an error status.
        """
        if not _is_remote(base):
            path = Path(base) / name
            if not path.is_file():
                raise FileNotFoundError(f"Model artifact not found: {path}")
            return path

        target = self.cache_dir / name
        if target.is_file():
            logger.debug(f"[loader] cached {name} -> {target}")
            return target

        url = base.rstrip("/") + "/" + name
        logger.info(f"[loader] downloading {url}")
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".part")
        response = requests.get(url, stream=True, timeout=self.s.DOWNLOAD_TIMEOUT)
        response.raise_for_status()
        with open(tmp, "wb") as f:
            for chunk in response.iter_content(chunk_size=8192):
                f.write(chunk)
        tmp.replace(target)
        return target

    # ---- per-artifact initialization (worker threads) ----
    def _load_detector(self, base: str) -> Any:
        path = self.fetch(base, DETECTOR_ARTIFACT)
        detector = cv2.CascadeClassifier(str(path))
        if detector.empty():
            raise RuntimeError(f"Invalid cascade file: {path}")
        logger.debug(f"[loader] detector ready: {path}")
        return detector

    def _load_landmarker(self, base: str) -> Any:
        path = self.fetch(base, LANDMARKS_ARTIFACT)
        import mediapipe as mp

        options = mp.tasks.vision.FaceLandmarkerOptions(
            base_options=mp.tasks.BaseOptions(model_asset_path=str(path)),
            running_mode=mp.tasks.vision.RunningMode.IMAGE,
            num_faces=1,
        )
        landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
        logger.debug(f"[loader] landmarker ready: {path}")
        return landmarker

    def _load_expression_net(self, base: str) -> DeepFaceExpressionNet:
        path = self.fetch(base, EXPRESSION_ARTIFACT)
        weights_dir = _deepface_weights_dir()
        target = weights_dir / EXPRESSION_ARTIFACT
        if not target.is_file():
            weights_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, target)
        net = DeepFaceExpressionNet()
        # Warm-up builds the network so the first tick is not slowed down
        net.predict(np.zeros((48, 48, 3), dtype=np.uint8))
        logger.debug(f"[loader] expression net ready: {target}")
        return net

    async def load(self, model_base_url: str) -> FaceExpressionModel:
        """
        Fetch and initialize all three artifacts.

        Raises:
            ModelLoadError: any artifact failed; the others are discarded.
        """
        logger.info(f"[loader] loading models from {model_base_url}")
        try:
            detector, landmarker, net = await asyncio.gather(
                asyncio.to_thread(self._load_detector, model_base_url),
                asyncio.to_thread(self._load_landmarker, model_base_url),
                asyncio.to_thread(self._load_expression_net, model_base_url),
            )
        except Exception as e:
            raise ModelLoadError(f"Could not load models from {model_base_url}: {e}") from e
        logger.info("[loader] models loaded")
        return FaceExpressionModel(detector, landmarker, net, min_face_size=self.s.MIN_FACE_SIZE)
