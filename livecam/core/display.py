"""
OpenCV window used by the render loop.
"""

import cv2
import numpy as np

from .settings import RENDER_IDLE_SEC


class WindowDisplay:
    """Shows frames in a named window and returns the key pressed, 255 for none."""

    def __init__(self, title: str = "LiveCam"):
        self.title = title

    def show(self, frame: np.ndarray) -> int:
        cv2.imshow(self.title, frame)
        return cv2.waitKey(1) & 0xFF

    def poll(self) -> int:
        # No frame to show: keep the window responsive and yield for a moment
        return cv2.waitKey(max(1, int(RENDER_IDLE_SEC * 1000))) & 0xFF

    def close(self):
        cv2.destroyAllWindows()
