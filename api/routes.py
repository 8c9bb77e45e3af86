"""
HTTP endpoints: page, MJPEG stream, live state websocket and session control.
"""
import asyncio
import html
import logging

import cv2
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, StreamingResponse

from moodcam.app import MoodDetector
from moodcam.camera import CameraUnavailableError
from moodcam.config import Settings
from moodcam.models import SessionStatus, TickResult, UIState
from moodcam.presenter import LABEL_PREFIX

router = APIRouter()
settings = Settings()
runtime = MoodDetector(settings)
logger = logging.getLogger(__name__)

PAGE = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Detector de Estado de Ánimo</title>
<style>
  body { margin: 0; display: flex; flex-direction: column; align-items: center;
         font-family: sans-serif; color: #f5f5f5; background-color: __COLOR__;
         transition: background-color 0.5s ease; }
  img { margin-top: 16px; }
  h3 { font-size: 1.5em; }
</style>
</head>
<body>
<img src="/live/stream" alt="live">
<h3 id="label"__HIDDEN__>__PREFIX__<span id="mood">__LABEL__</span></h3>
<script>
  fetch("/live/start", {method: "POST"});
  const waitModels = setInterval(async () => {
    const st = await (await fetch("/models/status")).json();
    if (st.ready) {
      document.getElementById("label").hidden = false;
      clearInterval(waitModels);
    }
  }, 1000);
  const ws = new WebSocket((location.protocol === "https:" ? "wss://" : "ws://") + location.host + "/live/ws");
  ws.onmessage = (ev) => {
    const ui = JSON.parse(ev.data);
    document.body.style.backgroundColor = ui.background_color;
    document.getElementById("mood").textContent = ui.displayed_label;
  };
</script>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
async def index():
    ui = runtime.session.ui_state
    return (PAGE
            .replace("__COLOR__", html.escape(ui.background_color))
            .replace("__HIDDEN__", "" if runtime.session.ready else " hidden")
            .replace("__PREFIX__", html.escape(LABEL_PREFIX))
            .replace("__LABEL__", html.escape(ui.displayed_label)))


@router.get("/models/status")
async def models_status():
    return {"ready": runtime.session.ready, "error": runtime.session.load_error}


@router.post("/live/start")
async def live_start():
    """
    Open the camera and start detection.

    Returns:
        dict: {"status": "started" | "already_running"}
    """
    if runtime.session.running:
        return {"status": "already_running"}
    try:
        await runtime.open_camera()
    except CameraUnavailableError as e:
        logger.exception("[api] camera unavailable")
        raise HTTPException(status_code=503, detail=str(e))
    logger.debug("[api] live detection started")
    return {"status": "started"}


@router.post("/live/stop")
async def live_stop():
    if not runtime.session.running:
        return {"status": "not_running"}
    await runtime.close_camera()
    logger.debug("[api] live detection stopped")
    return {"status": "stopped"}


@router.get("/live/status", response_model=SessionStatus)
async def live_status():
    return runtime.session.status()


async def _mjpeg_frames():
    frame_dt = 1.0 / max(1.0, settings.STREAM_FPS)
    while True:
        panel = await runtime.snapshot()
        ok, jpg = cv2.imencode(".jpg", panel)
        if ok:
            yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpg.tobytes() + b"\r\n"
        await asyncio.sleep(frame_dt)


@router.get("/live/stream")
async def live_stream():
    return StreamingResponse(_mjpeg_frames(), media_type="multipart/x-mixed-replace; boundary=frame")


@router.websocket("/live/ws")
async def live_ws(websocket: WebSocket):
    """Push the UI state after every applied tick (latest only)."""
    await websocket.accept()
    queue: asyncio.Queue[UIState] = asyncio.Queue(maxsize=1)

    def on_result(result: TickResult) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(result.ui)

    async def pump():
        while True:
            ui = await queue.get()
            await websocket.send_json(ui.model_dump())

    async def drain():
        # Raises WebSocketDisconnect once the client goes away
        while True:
            await websocket.receive_text()

    unsubscribe = runtime.session.subscribe(on_result)
    tasks = []
    try:
        await websocket.send_json(runtime.session.ui_state.model_dump())
        tasks = [asyncio.create_task(pump()), asyncio.create_task(drain())]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for t in done:
            t.result()
    except WebSocketDisconnect:
        logger.debug("[api] websocket client disconnected")
    finally:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        unsubscribe()
