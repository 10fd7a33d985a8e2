"""
HTTP control interface for a running LiveCam application.
"""

from .server import ControlServer, start_control_server

__all__ = [
    'ControlServer',
    'start_control_server',
]
