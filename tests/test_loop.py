import asyncio
import threading

from moodcam.loop import DetectionSession
from moodcam.models import SessionState

from conftest import FakeCamera, FakeCanvas, FakeLoader, FakeModel, make_detection


def _session(settings, camera, canvas, model, loaded=True):
    s = DetectionSession(settings, camera, loader=FakeLoader(model=model))
    s.attach_canvas(canvas)
    if loaded:
        asyncio.run(s.load_models())
    return s


def test_happy_face_updates_label_and_color(settings, camera, canvas):
    det = make_detection({"happy": 0.9, "sad": 0.05, "neutral": 0.05})
    s = _session(settings, camera, canvas, FakeModel([[det]]))

    res = asyncio.run(s.tick())

    assert res.ui.displayed_label == "Feliz 😊"
    assert res.ui.background_color == "#f6d654"
    assert res.ui.has_face is True
    assert len(res.detections) == 1
    assert s.ui_state == res.ui
    assert canvas.updates == [res]


def test_no_face_resets_state_and_clears_draw_list(settings, camera, canvas):
    model = FakeModel([[make_detection({"angry": 0.8})], []])
    s = _session(settings, camera, canvas, model)

    asyncio.run(s.tick())
    res = asyncio.run(s.tick())

    assert res.ui.displayed_label == "Sin rostro detectado"
    assert res.ui.background_color == settings.DEFAULT_COLOR
    assert res.ui.has_face is False
    assert res.detections == []
    assert canvas.updates[-1].detections == []


def test_unknown_label_falls_back_to_raw_label(settings, camera, canvas):
    s = _session(settings, camera, canvas, FakeModel([[make_detection({"confused": 0.7, "happy": 0.3})]]))
    res = asyncio.run(s.tick())
    assert res.ui.displayed_label == "confused"
    assert res.ui.background_color == settings.DEFAULT_COLOR
    assert res.ui.has_face is True


def test_empty_expression_mapping_counts_as_no_face(settings, camera, canvas):
    s = _session(settings, camera, canvas, FakeModel([[make_detection({})]]))
    res = asyncio.run(s.tick())
    assert res.ui.has_face is False
    assert res.detections == []


def test_inference_failure_is_no_face_and_loop_survives(settings, camera, canvas):
    model = FakeModel([RuntimeError("boom"), [make_detection({"sad": 0.6})]])
    s = _session(settings, camera, canvas, model)

    first = asyncio.run(s.tick())
    second = asyncio.run(s.tick())

    assert first.ui.displayed_label == "Sin rostro detectado"
    assert second.ui.displayed_label == "Triste 😞"


def test_detections_scaled_to_display_size(settings, canvas):
    camera = FakeCamera(width=320, height=240)
    s = _session(settings, camera, canvas, FakeModel([[make_detection({"happy": 1.0}, x=10, y=20, w=30, h=40)]]))
    res = asyncio.run(s.tick())
    r = res.detections[0].region
    assert (r.x, r.y, r.w, r.h) == (20, 40, 60, 80)


def test_tick_is_noop_until_preconditions_hold(settings, canvas):
    model = FakeModel([[make_detection({"happy": 1.0})]])
    s = DetectionSession(settings, FakeCamera(is_open=False), loader=FakeLoader(model=model))

    async def scenario():
        # models not ready, camera closed, no canvas
        assert await s.tick() is None
        await s.load_models()
        assert await s.tick() is None
        s.camera.is_open = True
        assert await s.tick() is None
        s.attach_canvas(canvas)
        return await s.tick()

    res = asyncio.run(scenario())
    assert res is not None and res.seq == 1
    assert model.calls == 1


def test_start_before_models_ready_does_no_inference(settings, camera, canvas):
    model = FakeModel([[make_detection({"happy": 1.0})]])
    s = _session(settings, camera, canvas, model, loaded=False)

    async def scenario():
        s.start()
        await asyncio.sleep(0.08)
        calls_before = model.calls
        updates_before = len(canvas.updates)
        await s.load_models()
        await asyncio.sleep(0.08)
        await s.aclose()
        return calls_before, updates_before

    calls_before, updates_before = asyncio.run(scenario())
    assert calls_before == 0 and updates_before == 0
    assert model.calls > 0 and len(canvas.updates) > 0
    assert canvas.updates[-1].ui.displayed_label == "Feliz 😊"


def test_start_twice_keeps_one_timer(settings, camera, canvas):
    s = _session(settings, camera, canvas, FakeModel())

    async def scenario():
        t1 = s.start()
        t2 = s.start()
        running = s.running
        await s.aclose()
        return t1, t2, running

    t1, t2, running = asyncio.run(scenario())
    assert t1 is t2
    assert running is True
    assert s.running is False
    assert s.state == SessionState.STOPPED


def test_timer_ticks_with_increasing_sequence(settings, camera, canvas):
    s = _session(settings, camera, canvas, FakeModel([[make_detection({"neutral": 0.9})]]))

    async def scenario():
        s.start()
        await asyncio.sleep(0.1)
        await s.aclose()
        count = len(canvas.updates)
        await asyncio.sleep(0.05)
        return count

    count = asyncio.run(scenario())
    assert count >= 2
    seqs = [u.seq for u in canvas.updates]
    assert seqs == sorted(seqs) and len(set(seqs)) == len(seqs)
    # nothing after stop
    assert len(canvas.updates) == count


def test_result_resolving_after_stop_is_discarded(settings, camera, canvas):
    gate = threading.Event()
    model = FakeModel([[make_detection({"happy": 1.0})]], gates={0: gate})
    s = _session(settings, camera, canvas, model)

    async def scenario():
        task = asyncio.create_task(s.tick())
        await asyncio.sleep(0.05)
        s.stop()
        gate.set()
        return await task

    assert asyncio.run(scenario()) is None
    assert canvas.updates == []
    assert s.ui_state.displayed_label == settings.INITIAL_LABEL
    # stopped sessions do not tick
    assert asyncio.run(s.tick()) is None


def test_older_result_resolving_late_is_discarded(settings, camera, canvas):
    gate = threading.Event()
    slow = [make_detection({"sad": 1.0})]
    fast = [make_detection({"happy": 1.0})]
    model = FakeModel([slow, fast], gates={0: gate})
    s = _session(settings, camera, canvas, model)

    async def scenario():
        t1 = asyncio.create_task(s.tick())
        await asyncio.sleep(0.05)
        r2 = await s.tick()
        gate.set()
        r1 = await t1
        return r1, r2

    r1, r2 = asyncio.run(scenario())
    assert r2.seq == 2 and r2.ui.displayed_label == "Feliz 😊"
    assert r1 is None
    assert s.ui_state.displayed_label == "Feliz 😊"
    assert [u.seq for u in canvas.updates] == [2]


def test_listeners_receive_results_until_unsubscribed(settings, camera, canvas):
    s = _session(settings, camera, canvas, FakeModel([[make_detection({"happy": 1.0})]]))
    seen = []

    def broken(result):
        raise ValueError("listener bug")

    s.subscribe(broken)
    unsubscribe = s.subscribe(seen.append)
    asyncio.run(s.tick())
    unsubscribe()
    asyncio.run(s.tick())

    assert len(seen) == 1
    assert len(canvas.updates) == 2


def test_model_load_failure_keeps_session_not_ready(settings, camera, canvas):
    loader = FakeLoader(error="missing face_landmarker.task")
    s = DetectionSession(settings, camera, loader=loader)
    s.attach_canvas(canvas)

    ok = asyncio.run(s.load_models())

    assert ok is False
    assert s.ready is False
    assert "face_landmarker.task" in s.load_error
    assert s.state == SessionState.MODELS_LOADING
    assert asyncio.run(s.tick()) is None
    status = s.status()
    assert status.models_ready is False and status.load_error == s.load_error


def test_readiness_is_set_once(settings, camera, canvas):
    loader = FakeLoader(model=FakeModel())
    s = DetectionSession(settings, camera, loader=loader)

    assert asyncio.run(s.load_models()) is True
    assert asyncio.run(s.load_models()) is True
    assert loader.calls == 1
    assert s.ready is True and s.state == SessionState.READY


def test_canvas_failure_still_reaches_listeners(settings, camera):
    class BrokenCanvas:
        def update(self, result):
            raise ValueError("draw failed")

    s = _session(settings, camera, BrokenCanvas(), FakeModel([[make_detection({"happy": 0.9})]]))
    seen = []
    s.subscribe(seen.append)

    res = asyncio.run(s.tick())

    assert res is not None and res.ui.displayed_label == "Feliz 😊"
    assert s.ui_state == res.ui
    assert seen == [res]


def test_state_reports_loading_until_models_ready(settings, camera, canvas):
    s = _session(settings, camera, canvas, FakeModel(), loaded=False)

    async def scenario():
        s.start()
        before = s.status().state
        await s.load_models()
        after = s.status().state
        await s.aclose()
        return before, after

    before, after = asyncio.run(scenario())
    assert before == SessionState.MODELS_LOADING
    assert after == SessionState.DETECTING


def test_state_stays_loading_when_models_fail(settings, camera, canvas):
    s = DetectionSession(settings, camera, loader=FakeLoader(error="404"))
    s.attach_canvas(canvas)

    async def scenario():
        await s.load_models()
        s.start()
        state = s.status().state
        await s.aclose()
        return state

    assert asyncio.run(scenario()) == SessionState.MODELS_LOADING
