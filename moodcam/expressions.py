"""
Expression label tables and the UI state derived from a tick's detections.
"""
from __future__ import annotations
from typing import Dict, List, Mapping, Optional, Tuple

from moodcam.config import Settings
from moodcam.models import Detection, Point, Region, UIState

# Fixed label set, in the order the expression network reports them
EXPRESSION_LABELS = ("neutral", "happy", "sad", "angry", "fearful", "disgusted", "surprised")

TRANSLATIONS: Dict[str, str] = {
    "neutral": "Neutral 😐",
    "happy": "Feliz 😊",
    "sad": "Triste 😞",
    "angry": "Enojado 😠",
    "fearful": "Asustado 😨",
    "disgusted": "Disgustado 🤢",
    "surprised": "Sorprendido 😮",
}

COLORS: Dict[str, str] = {
    "neutral": "#2c2c2c",    # dark grey
    "happy": "#f6d654",      # yellow
    "sad": "#4487d0",        # blue
    "angry": "#e9302a",      # red
    "fearful": "#9b74ca",    # purple
    "disgusted": "#83be5b",  # green
    "surprised": "#f69340",  # orange
}

# DeepFace emotion names -> our label set
_DEEPFACE_ALIASES = {
    "disgust": "disgusted",
    "fear": "fearful",
    "surprise": "surprised",
}


def normalize_expressions(raw: Mapping[str, float] | None) -> Dict[str, float]:
    """Rename DeepFace labels and rescale percentages to [0, 1], keeping order."""
    if not raw:
        return {}
    out: Dict[str, float] = {}
    for label, value in raw.items():
        key = _DEEPFACE_ALIASES.get(str(label).lower(), str(label).lower())
        out[key] = float(value)
    if any(v > 1.0 for v in out.values()):
        out = {k: v / 100.0 for k, v in out.items()}
    return out


def dominant_expression(expressions: Mapping[str, float] | None) -> Optional[str]:
    """
    Label with the highest probability; on ties the first one in mapping order wins.

    Returns None for an empty mapping.
    """
    best: Optional[str] = None
    best_p = 0.0
    for label, p in (expressions or {}).items():
        if best is None or p > best_p:
            best, best_p = label, p
    return best


def translate(label: str) -> str:
    return TRANSLATIONS.get(label, label)


def color_for(label: str, settings: Settings) -> str:
    return COLORS.get(label, settings.DEFAULT_COLOR)


def initial_state(settings: Settings) -> UIState:
    return UIState(displayed_label=settings.INITIAL_LABEL,
                   background_color=settings.DEFAULT_COLOR,
                   has_face=False)


def no_face_state(settings: Settings) -> UIState:
    return UIState(displayed_label=settings.NO_FACE_LABEL,
                   background_color=settings.DEFAULT_COLOR,
                   has_face=False)


def derive_ui_state(detections: List[Detection], settings: Settings) -> Tuple[UIState, List[Detection]]:
    """
    Map one tick's detections to (UIState, draw list).

    Only the first detection drives the label and color; all of them are drawn.
    A first detection without expressions counts as no face.
    """
    if not detections:
        return no_face_state(settings), []
    label = dominant_expression(detections[0].expressions)
    if label is None:
        return no_face_state(settings), []
    ui = UIState(displayed_label=translate(label),
                 background_color=color_for(label, settings),
                 has_face=True)
    return ui, list(detections)


def resize_detections(detections: List[Detection],
                      frame_size: Tuple[int, int],
                      display_size: Tuple[int, int]) -> List[Detection]:
    """Scale detections from frame pixel space to the display canvas."""
    fw, fh = frame_size
    dw, dh = display_size
    if fw <= 0 or fh <= 0 or (fw, fh) == (dw, dh):
        return list(detections)
    sx, sy = dw / float(fw), dh / float(fh)
    out: List[Detection] = []
    for d in detections:
        r = d.region
        out.append(Detection(
            region=Region(x=r.x * sx, y=r.y * sy, w=r.w * sx, h=r.h * sy),
            landmarks=[Point(x=p.x * sx, y=p.y * sy) for p in d.landmarks],
            expressions=dict(d.expressions),
        ))
    return out
