"""
Configuration for the mood detector.
"""
from pydantic import BaseModel
import os

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    # Where the three model artifacts live: a local directory or an http(s) base URL
    MODEL_BASE_URL: str = os.getenv("MODEL_BASE_URL", "models")
    MODEL_CACHE_DIR: str = os.getenv("MODEL_CACHE_DIR", ".models")
    DOWNLOAD_TIMEOUT: float = float(os.getenv("DOWNLOAD_TIMEOUT", "30"))

    DETECT_INTERVAL: float = float(os.getenv("DETECT_INTERVAL", "0.5"))
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    VIDEO_WIDTH: int = int(os.getenv("VIDEO_WIDTH", "640"))
    VIDEO_HEIGHT: int = int(os.getenv("VIDEO_HEIGHT", "480"))
    MIN_FACE_SIZE: int = int(os.getenv("MIN_FACE_SIZE", "40"))

    DEFAULT_COLOR: str = os.getenv("DEFAULT_COLOR", "#2c2c2c")
    INITIAL_LABEL: str = os.getenv("INITIAL_LABEL", "Detectando...")
    NO_FACE_LABEL: str = os.getenv("NO_FACE_LABEL", "Sin rostro detectado")
    TRANSITION_SECONDS: float = float(os.getenv("TRANSITION_SECONDS", "0.5"))
    EXPRESSION_MIN_CONFIDENCE: float = float(os.getenv("EXPRESSION_MIN_CONFIDENCE", "0.1"))
    DRAW_BOXES: bool = os.getenv("DRAW_BOXES", "0").lower() in ("1", "true", "yes")
    FONT_PATH: str = os.getenv("FONT_PATH", "DejaVuSans.ttf")
    STREAM_FPS: float = float(os.getenv("STREAM_FPS", "15"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize colors to lower-case "#rrggbb"
        color = (self.DEFAULT_COLOR or "#2c2c2c").strip().lower()
        if not color.startswith("#"):
            color = "#" + color
        object.__setattr__(self, "DEFAULT_COLOR", color)

    @property
    def display_size(self) -> tuple[int, int]:
        return self.VIDEO_WIDTH, self.VIDEO_HEIGHT
