"""Overlay canvas drawing helpers.

- draw_canvas: clear a transparent RGBA canvas, then draw landmarks,
  expression probabilities and (optionally) face boxes
- composite: blend an RGBA canvas over a BGR video frame
- put_text: Unicode-capable text via Pillow (cv2 Hershey fonts are ASCII only)

The canvas is always the display size; detections must already be scaled to it.
"""
from __future__ import annotations
from functools import lru_cache
from typing import List, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from moodcam.models import Detection

LANDMARK_COLOR = (255, 191, 0, 255)     # BGRA light blue
BOX_COLOR = (0, 255, 0, 255)
TEXT_COLOR = (255, 255, 255, 255)
TEXT_BG_COLOR = (0, 0, 0, 160)


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    """'#rrggbb' -> (b, g, r). Raises ValueError on malformed input."""
    c = color.strip().lstrip("#")
    if len(c) == 3:
        c = "".join(ch * 2 for ch in c)
    if len(c) != 6:
        raise ValueError(f"Invalid color: {color!r}")
    r, g, b = int(c[0:2], 16), int(c[2:4], 16), int(c[4:6], 16)
    return b, g, r


def new_canvas(size: Tuple[int, int]) -> np.ndarray:
    w, h = size
    return np.zeros((h, w, 4), dtype=np.uint8)


def clear_canvas(canvas: np.ndarray) -> np.ndarray:
    canvas[:] = 0
    return canvas


def draw_landmarks(canvas: np.ndarray, detections: Sequence[Detection]) -> None:
    h, w = canvas.shape[:2]
    for det in detections:
        for p in det.landmarks:
            x, y = int(round(p.x)), int(round(p.y))
            if 0 <= x < w and 0 <= y < h:
                cv2.circle(canvas, (x, y), 1, LANDMARK_COLOR, -1)


def draw_boxes(canvas: np.ndarray, detections: Sequence[Detection]) -> None:
    for det in detections:
        r = det.region
        cv2.rectangle(canvas, (int(r.x), int(r.y)), (int(r.x + r.w), int(r.y + r.h)), BOX_COLOR, 2)


def expression_lines(expressions: dict, min_confidence: float = 0.1) -> List[str]:
    return [f"{label} ({p:.2f})" for label, p in expressions.items() if p > min_confidence]


def draw_expressions(canvas: np.ndarray, detections: Sequence[Detection],
                     min_confidence: float = 0.1) -> None:
    """Text box with the likely expressions, anchored under each face box."""
    h, w = canvas.shape[:2]
    font, scale, thick, line_h = cv2.FONT_HERSHEY_SIMPLEX, 0.5, 1, 18
    for det in detections:
        lines = expression_lines(det.expressions, min_confidence)
        if not lines:
            continue
        r = det.region
        box_w = max(cv2.getTextSize(t, font, scale, thick)[0][0] for t in lines) + 8
        box_h = line_h * len(lines) + 6
        x = int(max(0, min(r.x, w - box_w)))
        y = int(max(0, min(r.y + r.h, h - box_h)))
        cv2.rectangle(canvas, (x, y), (x + box_w, y + box_h), TEXT_BG_COLOR, -1)
        for i, text in enumerate(lines):
            cv2.putText(canvas, text, (x + 4, y + line_h * (i + 1)), font, scale,
                        TEXT_COLOR, thick, cv2.LINE_AA)


def draw_canvas(canvas: np.ndarray, detections: Sequence[Detection],
                min_confidence: float = 0.1, boxes: bool = False) -> np.ndarray:
    """Clear, then draw the current detections. Empty detections leave it clear."""
    clear_canvas(canvas)
    if boxes:
        draw_boxes(canvas, detections)
    draw_expressions(canvas, detections, min_confidence)
    draw_landmarks(canvas, detections)
    return canvas


def composite(frame: np.ndarray, canvas: np.ndarray) -> np.ndarray:
    """Alpha-blend the RGBA canvas over a BGR frame of the same size."""
    if frame.shape[:2] != canvas.shape[:2]:
        frame = cv2.resize(frame, (canvas.shape[1], canvas.shape[0]), interpolation=cv2.INTER_AREA)
    alpha = canvas[:, :, 3:4].astype(np.float32) / 255.0
    out = frame.astype(np.float32) * (1.0 - alpha) + canvas[:, :, :3].astype(np.float32) * alpha
    return out.astype(np.uint8)


@lru_cache(maxsize=16)
def _font(path: str, size: int):
    try:
        return ImageFont.truetype(path, size)
    except OSError:
        return ImageFont.load_default()


def put_text(img: np.ndarray, text: str, org: Tuple[int, int], size: int = 24,
             color: Tuple[int, int, int] = (255, 255, 255),
             font_path: str = "DejaVuSans.ttf", center: bool = False) -> np.ndarray:
    """Draw text on a BGR image with Pillow; returns a new image."""
    pil = Image.fromarray(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(pil)
    font = _font(font_path, size)
    x, y = org
    if center:
        left, _, right, _ = draw.textbbox((0, 0), text, font=font)
        x = int(x - (right - left) / 2)
    b, g, r = color
    draw.text((x, y), text, font=font, fill=(r, g, b))
    return cv2.cvtColor(np.array(pil), cv2.COLOR_RGB2BGR)
