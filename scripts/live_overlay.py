
"""Run the mood detector in a local camera window.

Usage:
    uvicorn api.main:app --reload  # (separate, browser UI at http://localhost:8000/)
    python scripts/live_overlay.py  # (to see the panel in an OpenCV window)

Press 'q' to quit the window.
"""
import asyncio
import logging

from moodcam.app import run_window
from moodcam.config import Settings

if __name__ == '__main__':
    s = Settings()
    logging.basicConfig(level=getattr(logging, s.LOG_LEVEL.upper(), logging.INFO))
    asyncio.run(run_window(s))
