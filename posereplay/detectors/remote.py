"""
Remote pose detector.

Talks to an HTTP pose service:

    GET  {base_url}/health  -> 200 when the service can take requests
    POST {base_url}/detect  (body: JPEG, Content-Type: image/jpeg)
         -> {"landmarks": [{"x", "y", "z", "visibility"}, ... 33 entries]}
         -> {"landmarks": null} or {"landmarks": []} when no pose was found
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
import numpy as np
import cv2

from posereplay.detectors.base import PoseDetector
from posereplay.errors import DetectError, DetectorUnavailable, InitError
from posereplay.landmarks import LandmarkSet
from posereplay.logger import get_logger

logger = get_logger(__name__)

# Statuses that mean the service will not work for any frame.
FATAL_STATUSES = frozenset({401, 403, 404, 410})


def parse_landmarks(payload: Dict[str, Any]) -> Optional[LandmarkSet]:
    """Convert a /detect response body into a LandmarkSet (or None)."""
    if not isinstance(payload, dict) or "landmarks" not in payload:
        raise DetectError("Response has no 'landmarks' field")

    points = payload["landmarks"]
    if not points:
        return None

    try:
        return LandmarkSet.from_rows(
            (p["x"], p["y"], p.get("z", 0.0), p.get("visibility", 0.0))
            for p in points
        )
    except (KeyError, TypeError, ValueError) as e:
        raise DetectError(f"Malformed landmarks in response: {e}") from e


class RemotePoseDetector(PoseDetector):
    """Pose detector backed by a remote HTTP service."""

    name = "remote"

    def __init__(self, base_url: Optional[str], timeout_s: float = 10.0, jpeg_quality: int = 90):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_s = timeout_s
        self.jpeg_quality = jpeg_quality
        self._session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        if self._session is not None:
            return
        if not self.base_url:
            raise InitError("Remote pose detector has no service URL configured")

        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s))
        try:
            async with session.get(f"{self.base_url}/health") as response:
                if response.status != 200:
                    raise InitError(
                        f"Pose service at {self.base_url} is not healthy (HTTP {response.status})"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await session.close()
            raise InitError(f"Pose service at {self.base_url} is unreachable: {e}") from e
        except InitError:
            await session.close()
            raise

        logger.info(f"Connected to pose service: {self.base_url}")
        self._session = session

    async def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        if self._session is None or self._session.closed:
            raise DetectorUnavailable("Remote detector session is closed")

        ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            raise DetectError("Could not encode frame as JPEG")

        try:
            async with self._session.post(
                f"{self.base_url}/detect",
                data=buffer.tobytes(),
                headers={"Content-Type": "image/jpeg"},
            ) as response:
                if response.status in FATAL_STATUSES:
                    raise DetectorUnavailable(
                        f"Pose service rejected requests (HTTP {response.status})"
                    )
                if response.status != 200:
                    raise DetectError(f"Pose service error (HTTP {response.status})")
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise DetectError(f"Pose service request failed: {e}") from e

        return parse_landmarks(payload)

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()
