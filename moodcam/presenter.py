"""
Presentation layer: turns the latest tick result into pixels.
"""
from __future__ import annotations
from typing import Optional, Tuple
import time

import numpy as np

from moodcam.config import Settings
from moodcam.expressions import initial_state
from moodcam.models import TickResult, UIState
from moodcam.overlay import composite, draw_canvas, hex_to_bgr, new_canvas, put_text

TITLE = "Detector de Estado de Ánimo"
LOADING_TEXT = "Cargando modelos de IA, por favor, espere..."
LOADED_TEXT = "¡Modelos Cargados!"
LABEL_PREFIX = "Estado de ánimo detectado: "

MARGIN = 20
HEADER_H = 90
FOOTER_H = 70

BGR = Tuple[int, int, int]


class BackgroundTransition:
    """Linear blend from the current color to a new target over `duration` seconds."""

    def __init__(self, color: str, duration: float = 0.5):
        self.duration = max(0.0, float(duration))
        self.start: BGR = hex_to_bgr(color)
        self.target: BGR = self.start
        self.started_at = 0.0

    def set_target(self, color: str, now: Optional[float] = None) -> None:
        now = time.monotonic() if now is None else now
        target = hex_to_bgr(color)
        if target == self.target:
            return
        self.start = self.current(now)
        self.target = target
        self.started_at = now

    def current(self, now: Optional[float] = None) -> BGR:
        now = time.monotonic() if now is None else now
        if self.duration <= 0:
            return self.target
        t = min(1.0, max(0.0, (now - self.started_at) / self.duration))
        return tuple(int(round(s + (e - s) * t)) for s, e in zip(self.start, self.target))


def _text_color(bg: BGR) -> BGR:
    b, g, r = bg
    luma = 0.299 * r + 0.587 * g + 0.114 * b
    return (20, 20, 20) if luma > 150 else (245, 245, 245)


class Presenter:
    """Keeps the latest UI state and overlay canvas; renders the full panel."""

    def __init__(self, settings: Settings):
        self.s = settings
        self.canvas = new_canvas(settings.display_size)
        self.ui: UIState = initial_state(settings)
        self.background = BackgroundTransition(self.ui.background_color, settings.TRANSITION_SECONDS)
        self.models_ready = False
        self.load_error: Optional[str] = None

    def set_model_status(self, ready: bool, error: Optional[str] = None) -> None:
        self.models_ready = ready
        self.load_error = error

    def update(self, result: TickResult, now: Optional[float] = None) -> None:
        self.ui = result.ui
        self.background.set_target(result.ui.background_color, now)
        draw_canvas(self.canvas, result.detections,
                    min_confidence=self.s.EXPRESSION_MIN_CONFIDENCE,
                    boxes=self.s.DRAW_BOXES)

    def status_text(self) -> str:
        if self.load_error:
            return f"Error cargando los modelos: {self.load_error}"
        return LOADED_TEXT if self.models_ready else LOADING_TEXT

    def render(self, frame: Optional[np.ndarray], now: Optional[float] = None) -> np.ndarray:
        """Panel: title, model status, video with overlay, detected mood label."""
        w, h = self.s.display_size
        bg = self.background.current(now)
        fg = _text_color(bg)
        panel = np.empty((HEADER_H + h + FOOTER_H, w + 2 * MARGIN, 3), dtype=np.uint8)
        panel[:] = bg

        video = frame if frame is not None else np.zeros((h, w, 3), dtype=np.uint8)
        panel[HEADER_H:HEADER_H + h, MARGIN:MARGIN + w] = composite(video, self.canvas)

        cx = panel.shape[1] // 2
        panel = put_text(panel, TITLE, (cx, 12), 30, fg, self.s.FONT_PATH, center=True)
        panel = put_text(panel, self.status_text(), (cx, 54), 18, fg, self.s.FONT_PATH, center=True)
        if self.models_ready:
            panel = put_text(panel, LABEL_PREFIX + self.ui.displayed_label,
                             (cx, HEADER_H + h + 20), 26, fg, self.s.FONT_PATH, center=True)
        return panel
