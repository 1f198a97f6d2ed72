#!/usr/bin/env python3
"""
app.py — PathCam service.

Serves one KeyFrameInterpolator over HTTP and a WebSocket:
  - GET  /api/state, /api/keyframes, /api/path   read-only path data for viewers
  - POST /api/play, /api/stop                    playback control
  - PUT  /api/settings                           fps / speed / smoothing
  - POST /api/keyframes/load, /api/keyframes/save   paths inside keyframe_dir
  - WS   /ws                                     init packet, play/stop commands,
                                                 live 'frame' and 'play_done' events

The server-side camera is a Frame; every frame written to it during playback
is broadcast to the connected clients.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Query
from fastapi.responses import JSONResponse

import settings as settings_mod
from interpolator import KeyFrameInterpolator
from pose import Frame, Pose

SETTINGS_FILE = settings_mod.SETTINGS_FILE
state = settings_mod.load_settings(SETTINGS_FILE)

logging.basicConfig(level=getattr(logging, str(state["log_level"]).upper(), logging.INFO))
logger = logging.getLogger("PathCam.App")

app    = FastAPI()
camera = Frame()
interp = KeyFrameInterpolator(camera)
settings_mod.apply_settings(interp, state)

connected_clients: set = set()
_pending_broadcasts: set = set()


# ─── BROADCAST ────────────────────────────────────────────────────────────────

async def broadcast(payload: dict):
    """Send to every connected client, dropping the ones that went away."""
    dead = set()
    for ws in list(connected_clients):
        try:
            await ws.send_json(payload)
        except Exception:
            dead.add(ws)
    connected_clients.difference_update(dead)


def _schedule_broadcast(payload: dict):
    # Signals are emitted from inside the playback task, on the event loop
    if connected_clients:
        task = asyncio.get_running_loop().create_task(broadcast(payload))
        _pending_broadcasts.add(task)
        task.add_done_callback(_pending_broadcasts.discard)


def _on_frame(index: int, pose: Pose):
    packet = {"type": "frame", "index": index}
    packet.update(pose.to_dict())
    _schedule_broadcast(packet)


def _on_done():
    _schedule_broadcast({"type": "play_done"})


interp.frame_interpolated.connect(_on_frame)
interp.interpolation_stopped.connect(_on_done)


# ─── INIT PACKET ──────────────────────────────────────────────────────────────

def _build_init_packet() -> dict:
    """Full state packet sent to every new WS client on connect."""
    return {
        "type":          "init",
        "running":       interp.is_interpolation_started(),
        "fps":           interp.frame_rate(),
        "speed":         interp.interpolation_speed(),
        "smoothing":     interp.smoothing_iterations(),
        "keyframes":     interp.number_of_keyframes(),
        "duration":      round(interp.duration(), 6),
        "resume_index":  interp.player.next_index,
        "camera":        camera.pose().to_dict(),
    }


# ─── HTTP ─────────────────────────────────────────────────────────────────────

@app.get("/api/state")
async def api_state():
    return JSONResponse(_build_init_packet())


@app.get("/api/keyframes")
async def api_keyframes():
    frames = []
    for i, pose in enumerate(interp.keyframe_poses()):
        entry = pose.to_dict()
        entry["time"] = interp.keyframe_time(i)
        entry["matrix"] = pose.matrix().round(6).tolist()
        frames.append(entry)
    return JSONResponse({"keyframes": frames})


@app.get("/api/path")
async def api_path():
    poses = interp.path()
    return JSONResponse({
        "interval": interp.sample_interval(),
        "samples":  [p.to_dict() for p in poses],
    })


@app.post("/api/play")
async def api_play():
    started = interp.start_interpolation()
    await broadcast({"type": "run_state", "running": interp.is_interpolation_started()})
    return JSONResponse({"started": started, "resume_index": interp.player.next_index})


@app.post("/api/stop")
async def api_stop():
    interp.stop_interpolation()
    await broadcast({"type": "run_state", "running": False})
    return JSONResponse({"stopped": True, "resume_index": interp.player.next_index})


@app.put("/api/settings")
async def api_settings(fps: Optional[float] = Query(default=None),
                       speed: Optional[float] = Query(default=None),
                       smoothing: Optional[int] = Query(default=None)):
    updates = {}
    if fps is not None:
        updates["fps"] = fps
    if speed is not None:
        updates["speed"] = speed
    if smoothing is not None:
        updates["smoothing_iterations"] = smoothing

    candidate = dict(state)
    candidate.update(updates)
    try:
        settings_mod.apply_settings(interp, candidate)
    except ValueError as e:
        settings_mod.apply_settings(interp, state)
        return JSONResponse({"error": str(e)}, status_code=400)

    state.update(updates)
    settings_mod.save_settings(state, SETTINGS_FILE)
    packet = _build_init_packet()
    await broadcast(packet)
    return JSONResponse(packet)


@app.post("/api/keyframes/load")
async def api_load(path: str = Query(...)):
    try:
        target = settings_mod.resolve_keyframe_path(state, path)
    except ValueError as e:
        logger.warning(f"Rejected keyframe path: {e}")
        return JSONResponse({"error": str(e)}, status_code=400)
    ok = interp.read_keyframes(str(target))
    if not ok:
        return JSONResponse({"error": f"No keyframes loaded from {path}"}, status_code=400)
    await broadcast(_build_init_packet())
    return JSONResponse({"loaded": interp.number_of_keyframes(),
                         "duration": interp.duration()})


@app.post("/api/keyframes/save")
async def api_save(path: str = Query(...)):
    try:
        target = settings_mod.resolve_keyframe_path(state, path)
    except ValueError as e:
        logger.warning(f"Rejected keyframe path: {e}")
        return JSONResponse({"error": str(e)}, status_code=400)
    ok = interp.save_keyframes(str(target))
    if not ok:
        return JSONResponse({"error": f"Could not save keyframes to {path}"}, status_code=400)
    return JSONResponse({"saved": interp.number_of_keyframes(), "path": str(target)})


# ─── WEBSOCKET ────────────────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    connected_clients.add(websocket)
    await websocket.send_json(_build_init_packet())
    try:
        while True:
            msg = await websocket.receive_json()
            cmd = msg.get("cmd")
            if cmd == "play":
                started = interp.start_interpolation()
                await broadcast({"type": "run_state",
                                 "running": interp.is_interpolation_started(),
                                 "started": started})
            elif cmd == "stop":
                interp.stop_interpolation()
                await broadcast({"type": "run_state", "running": False})
            elif cmd == "state":
                await websocket.send_json(_build_init_packet())
            else:
                await websocket.send_json({"type": "error", "msg": f"Unknown command: {cmd}"})
    except WebSocketDisconnect:
        logger.info("WS: client disconnected.")
    finally:
        connected_clients.discard(websocket)


# ─── STARTUP ──────────────────────────────────────────────────────────────────

@app.on_event("startup")
async def startup():
    kf_file = state.get("keyframe_file")
    if kf_file and Path(kf_file).exists():
        interp.read_keyframes(kf_file)
    logger.info(f"PathCam ready: {interp.number_of_keyframes()} keyframes, "
                f"{interp.frame_rate()} fps, speed {interp.interpolation_speed()}")


@app.on_event("shutdown")
async def shutdown():
    interp.stop_interpolation()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=state["host"], port=int(state["port"]))
