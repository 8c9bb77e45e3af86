"""
Pydantic data models shared by the loop, the presenter and the API.
"""
from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class Region(BaseModel):
    x: float
    y: float
    w: float
    h: float

class Point(BaseModel):
    x: float
    y: float

class Detection(BaseModel):
    """One located face with its landmarks and expression probabilities."""
    region: Region
    landmarks: List[Point] = Field(default_factory=list)
    expressions: Dict[str, float] = Field(default_factory=dict)

class UIState(BaseModel):
    displayed_label: str
    background_color: str
    has_face: bool = False

class TickResult(BaseModel):
    seq: int
    ts: float
    ui: UIState
    detections: List[Detection] = Field(default_factory=list)


# session


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    MODELS_LOADING = "models_loading"
    READY = "ready"
    DETECTING = "detecting"
    STOPPED = "stopped"

class SessionStatus(BaseModel):
    state: SessionState
    models_ready: bool
    load_error: Optional[str] = None
    running: bool
    started_at: float | None = None
    last_seq: int = 0
    ui: UIState
