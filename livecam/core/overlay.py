"""
Overlay drawing

Draws detections and ranked labels on top of a frame with OpenCV. All
functions draw in place and return the frame.
"""

from typing import Sequence

import cv2
import numpy as np

from .predictions import Detection, PredictionEntry


# BGR colors
BOX_COLOR = (255, 255, 0)       # cyan
TOP_LABEL_COLOR = (170, 255, 0)  # green
LABEL_COLOR = (255, 255, 255)
TEXT_ON_BOX_COLOR = (0, 0, 0)

FONT = cv2.FONT_HERSHEY_SIMPLEX


def draw_detections(frame: np.ndarray, detections: Sequence[Detection], min_score: float) -> np.ndarray:
    """Boxes and "label 87.5%" tags for detections scoring at least min_score."""
    for detection in detections:
        if detection.confidence < min_score:
            continue

        x, y, w, h = (int(round(v)) for v in detection.bbox)
        cv2.rectangle(frame, (x, y), (x + w, y + h), BOX_COLOR, 2)

        text = f"{detection.label} {detection.confidence * 100:.1f}%"
        (text_w, text_h), _ = cv2.getTextSize(text, FONT, 0.5, 1)
        # Tag sits above the box unless the box touches the top edge
        top = y - 20 if y > 20 else y
        cv2.rectangle(frame, (x, top), (x + text_w + 6, top + 20), BOX_COLOR, -1)
        cv2.putText(frame, text, (x + 3, top + 15), FONT, 0.5, TEXT_ON_BOX_COLOR, 1)
    return frame


def draw_ranked_labels(frame: np.ndarray, predictions: Sequence[PredictionEntry], decimals: int = 0) -> np.ndarray:
    """
    Stack "label - 87%" lines from the bottom-left corner upwards.

    The top prediction is highlighted; every line gets a translucent backdrop.
    """
    height = frame.shape[0]
    for index, prediction in enumerate(predictions):
        text = f"{prediction.label} - {prediction.confidence * 100:.{decimals}f}%"
        y_pos = height - 40 - index * 30
        (text_w, _), _ = cv2.getTextSize(text, FONT, 0.7, 2)

        overlay = frame.copy()
        cv2.rectangle(overlay, (8, y_pos - 22), (8 + text_w + 12, y_pos + 6), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)

        color = TOP_LABEL_COLOR if index == 0 else LABEL_COLOR
        cv2.putText(frame, text, (12, y_pos), FONT, 0.7, color, 2)
    return frame


def draw_status_line(frame: np.ndarray, mode: str, fps: float) -> np.ndarray:
    width = frame.shape[1]
    cv2.putText(frame, f"Mode: {mode}", (10, 25), FONT, 0.6, LABEL_COLOR, 2)
    cv2.putText(frame, f"FPS: {fps:.1f}", (width - 120, 25), FONT, 0.6, LABEL_COLOR, 2)
    return frame
