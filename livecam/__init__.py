"""
LiveCam - Real-time Camera Classification

Live webcam view with three interchangeable prediction sources: an object
detector, a custom image classifier and a k-nearest-neighbour classifier
trained from examples captured on the spot.
"""

__version__ = "1.0.0"
__author__ = "LiveCam Team"

from .app import LiveCamApp
from .core.mode_controller import Mode

__all__ = [
    'LiveCamApp',
    'Mode',
]
