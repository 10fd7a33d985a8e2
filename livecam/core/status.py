#!/usr/bin/env python3

"""
Thread-safe status board shared by the camera, the loops and the control server
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, List, Tuple


logger = logging.getLogger(__name__)


class StatusBoard:
    """
    Holds the latest human-readable status message.

    Every message is also written to the log, so nothing reported to the user
    is lost when no one is watching the board.
    """

    def __init__(self, initial: str = "No model loaded", history_size: int = 50):
        # The mutex to prevent concurrent writers from interleaving
        self.lock = threading.Lock()
        self.message = initial
        self.history: deque = deque(maxlen=history_size)
        self.listeners: List[Callable[[str], None]] = []

    def report(self, message: str, level: int = logging.INFO):
        """
        Publish a new status message.

        Args:
            message: the text shown to the user
            level: logging level used when writing the message to the log
        Returns:
            None
        """
        logger.log(level, message)
        with self.lock:
            self.message = message
            self.history.append((time.time(), message))
            listeners = list(self.listeners)

        for listener in listeners:
            listener(message)

    def error(self, message: str):
        self.report(message, logging.ERROR)

    def subscribe(self, listener: Callable[[str], None]):
        with self.lock:
            self.listeners.append(listener)

    def get(self) -> str:
        # Reading a single attribute needs no lock
        return self.message

    def recent(self) -> List[Tuple[float, str]]:
        with self.lock:
            return list(self.history)

    def __str__(self):
        return f"Status: {self.message}"
