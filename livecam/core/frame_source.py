#!/usr/bin/env python3

"""
Camera frame source

Grabs frames from a webcam on its own thread and keeps only the latest one,
so readers never wait on the device.
"""

import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

from .errors import CameraAccessError
from .settings import CAMERA_FPS, FRAME_HEIGHT, FRAME_WIDTH, WEBCAM_ID


logger = logging.getLogger(__name__)


def frame_ready(frame: Optional[np.ndarray]) -> bool:
    """A frame counts as ready once it has non-zero width and height."""
    return frame is not None and frame.ndim >= 2 and frame.shape[0] > 0 and frame.shape[1] > 0


class CameraFrameSource:
    """
    Webcam capture with a latest-frame slot.

    Args:
        webcam_id: device index passed to cv2.VideoCapture
        width, height, fps: requested capture properties
    """

    def __init__(self,
                 webcam_id: int = WEBCAM_ID,
                 width: int = FRAME_WIDTH,
                 height: int = FRAME_HEIGHT,
                 fps: int = CAMERA_FPS):
        self.webcam_id = webcam_id
        self.width = width
        self.height = height
        self.fps = fps

        self._cap = None
        self._frame: Optional[np.ndarray] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._paused = threading.Event()

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    def start(self):
        """
        Open the webcam and start grabbing frames.

        Raises:
            CameraAccessError: the device could not be opened
        """
        if self._cap is not None:
            return

        cap = cv2.VideoCapture(self.webcam_id)
        if not cap.isOpened():
            cap.release()
            raise CameraAccessError(f"Could not open webcam (ID: {self.webcam_id})")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        cap.set(cv2.CAP_PROP_FPS, self.fps)

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info(f"Webcam properties: {width}x{height}, {cap.get(cv2.CAP_PROP_FPS)} FPS")

        self._cap = cap
        self._frame = None
        self._stop_event = threading.Event()
        self._paused.clear()
        self._thread = threading.Thread(target=self._grab_loop, args=(cap, self._stop_event),
                                        name="camera-grabber", daemon=True)
        self._thread.start()

    def _grab_loop(self, cap, stop_event: threading.Event):
        while not stop_event.is_set():
            if self._paused.is_set():
                stop_event.wait(0.05)
                continue

            ret, frame = cap.read()
            if not ret:
                logger.warning("Failed to grab frame from webcam")
                stop_event.wait(0.05)
                continue

            # Swap the reference; readers keep whatever frame they already hold
            self._frame = frame

    def pause(self):
        self._paused.set()

    def resume(self):
        self._paused.clear()

    def stop(self):
        """Stop grabbing and release the device."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._frame = None

    def is_ready(self) -> bool:
        return self._cap is not None and frame_ready(self._frame)

    def current_frame(self) -> Optional[np.ndarray]:
        return self._frame if self.is_ready() else None

    def wait_until_ready(self, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.is_ready():
                return True
            time.sleep(0.01)
        return self.is_ready()
