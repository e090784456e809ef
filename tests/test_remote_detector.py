import asyncio

import numpy as np
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from posereplay.detectors import RemotePoseDetector, parse_landmarks
from posereplay.errors import DetectError, DetectorUnavailable, InitError
from posereplay.landmarks import NUM_LANDMARKS
from posereplay.pose_estimator import PoseInferenceAdapter

IMAGE = np.zeros((48, 64, 3), dtype=np.uint8)

POINTS = [{"x": 0.5, "y": 0.25, "z": 0.0, "visibility": 0.9}] * NUM_LANDMARKS


# ==============================================================================
# Response parsing
# ==============================================================================

def test_parse_full_landmark_list():
    landmarks = parse_landmarks({"landmarks": POINTS})

    assert len(landmarks) == NUM_LANDMARKS
    assert landmarks.get("NOSE").y == 0.25


@pytest.mark.parametrize("payload", [{"landmarks": None}, {"landmarks": []}])
def test_parse_no_pose(payload):
    assert parse_landmarks(payload) is None


def test_parse_defaults_missing_z_and_visibility():
    landmarks = parse_landmarks({"landmarks": [{"x": 0.1, "y": 0.2}] * NUM_LANDMARKS})

    assert landmarks[0].z == 0.0
    assert landmarks[0].visibility == 0.0


@pytest.mark.parametrize("payload", [
    {},
    {"pose": POINTS},
    {"landmarks": POINTS[:17]},
    {"landmarks": [{"y": 0.5}] * NUM_LANDMARKS},
    {"landmarks": [{"x": "left", "y": 0.5}] * NUM_LANDMARKS},
])
def test_parse_malformed_payloads(payload):
    with pytest.raises(DetectError):
        parse_landmarks(payload)


# ==============================================================================
# Against a local pose service
# ==============================================================================

def make_service(detect_status=200, detect_body=None, health_status=200):
    async def health(request):
        return web.Response(status=health_status)

    async def detect(request):
        body = await request.read()
        assert request.content_type == "image/jpeg"
        assert body[:2] == b"\xff\xd8"
        if detect_status != 200:
            return web.Response(status=detect_status)
        return web.json_response(detect_body if detect_body is not None else {"landmarks": POINTS})

    app = web.Application()
    app.router.add_get("/health", health)
    app.router.add_post("/detect", detect)
    return app


async def run_against(app, frames=1):
    server = TestServer(app)
    await server.start_server()
    adapter = PoseInferenceAdapter(RemotePoseDetector(str(server.make_url("/")), timeout_s=5.0))
    try:
        await adapter.initialize()
        return [await adapter.detect(IMAGE) for _ in range(frames)]
    finally:
        await adapter.close()
        await server.close()


def test_remote_detection_round_trip():
    results = asyncio.run(run_against(make_service(), frames=2))

    assert all(len(r) == NUM_LANDMARKS for r in results)


def test_remote_no_pose():
    results = asyncio.run(run_against(make_service(detect_body={"landmarks": None})))
    assert results == [None]


def test_remote_server_error_is_transient():
    results = asyncio.run(run_against(make_service(detect_status=500)))
    assert results == [None]


def test_remote_auth_failure_is_fatal():
    with pytest.raises(DetectorUnavailable):
        asyncio.run(run_against(make_service(detect_status=401)))


def test_remote_unhealthy_service_fails_init():
    with pytest.raises(InitError):
        asyncio.run(run_against(make_service(health_status=503)))
