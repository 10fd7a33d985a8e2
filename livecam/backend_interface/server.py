#!/usr/bin/env python3

"""
Server to control a running LiveCam application over HTTP
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Tuple

from ..core.errors import LiveCamError
from .server_settings import *


logger = logging.getLogger(__name__)


class HTTPRequestHandler(BaseHTTPRequestHandler):
    """
    Handles the GET and POST requests of a control client.

    Every POST body is a JSON object (the dataset import route takes the
    dataset file itself). Responses are JSON.
    """

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def send_body(self, status: int, body: bytes, content_type: str, headers: dict = None):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(body)

    def send_json(self, status: int, payload):
        self.send_body(status, json.dumps(payload).encode("utf-8"), "application/json")

    def send_404(self):
        """
        Method to send 404 as status code and an error message as a response for an invalid request
        """
        self.send_json(NOT_FOUND, {"error": "not found"})

    def send_error_message(self, message: str):
        self.send_json(INVALID, {"error": message, "status": self.server.app.status.get()})

    def read_body(self) -> bytes:
        content_length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(content_length) if content_length > 0 else b""

    def do_GET(self):
        """
        Override method to handle GET requests
        """
        if self.path not in GET_REQUESTS:
            self.send_404()
            return

        app = self.server.app
        if self.path == STATUS:
            self.send_json(OK, app.describe())
            return

        # DATASET_EXPORT
        try:
            exported = app.store.export_dataset()
        except LiveCamError as ex:
            app.report_error(ex)
            self.send_error_message(str(ex))
            return

        self.send_body(OK, exported.content, exported.content_type,
                       {"Content-Disposition": f'attachment; filename="{exported.filename}"'})

    def do_POST(self):
        """
        Override method to handle POST requests
        """
        # Consume the body before answering, even for unknown routes
        body = self.read_body()

        if self.path not in POST_REQUESTS:
            self.send_404()
            return

        app = self.server.app

        if self.path == DATASET_IMPORT:
            data = body
        else:
            try:
                # Try to deserialize json payload
                data = json.loads(body.decode("utf-8")) if body else {}
                if not isinstance(data, dict):
                    raise ValueError("JSON body must be an object")
            except (UnicodeDecodeError, ValueError) as ex:
                logger.warning(f"Invalid JSON on {self.path}: {ex}")
                self.send_json(INVALID, {"error": f"Invalid JSON: {ex}"})
                return

        try:
            result = self.server.dispatch(self.path, data)
        except (LiveCamError, RuntimeError, ValueError, TypeError, KeyError) as ex:
            app.report_error(ex)
            self.send_error_message(str(ex))
            return

        response = {"status": app.status.get()}
        if result is not None:
            response["result"] = result
        self.send_json(OK, response)


class ControlServer(HTTPServer):

    """
    HTTP Server
    Custom class for an HTTP Server to pass the LiveCamApp to the HTTPRequestHandler
    """

    def __init__(self, server_address: Tuple[str, int], app, RequestHandlerClass=HTTPRequestHandler):

        """
        Constructor
        Args:
            server_address: a tuple which contains the IP address of the server (as a string) and the port (as an int)
            app: the LiveCamApp being controlled
            RequestHandlerClass: any class which extends the BaseHTTPRequestHandler class
        """

        super().__init__(server_address, RequestHandlerClass)
        self.app = app

    def dispatch(self, path: str, data):
        """
        Run the operation behind a POST route.

        Returns:
            A JSON-serializable result, or None
        """
        app = self.app

        if path == CAMERA_START:
            app.start_camera()
        elif path == CAMERA_STOP:
            app.stop_camera()
        elif path == CAMERA_PAUSE:
            app.pause_camera()
        elif path == CAMERA_RESUME:
            app.resume_camera()

        elif path == LOAD_DETECTOR:
            app.load_detector()
        elif path == LOAD_CUSTOM_MODEL:
            custom_model = app.load_custom_model(data.get("url"))
            return {"labels": list(custom_model.labels)}
        elif path == LOAD_FEATURE_EXTRACTOR:
            app.load_feature_extractor()
            return {"dimension": app.extractor.dimension}
        elif path == SET_NEAREST_NEIGHBOR:
            if "enabled" in data:
                mode = app.set_nearest_neighbor(bool(data["enabled"]))
            else:
                mode = app.toggle_nearest_neighbor()
            return {"mode": mode.value}
        elif path == SET_MODE:
            return {"mode": app.activate(data["mode"]).value}

        elif path == ADD_EXAMPLE:
            example = app.add_example(data.get("label"))
            return {"label": example.label, "examples": len(app.store)}
        elif path == DATASET_SAVE:
            app.save_dataset()
        elif path == DATASET_LOAD:
            return {"loaded": app.load_dataset(), "examples": len(app.store)}
        elif path == DATASET_CLEAR:
            app.clear_dataset()
        elif path == DATASET_IMPORT:
            return {"examples": app.store.import_dataset(data)}

        elif path == SETTINGS:
            if "k" in data:
                app.set_k(data["k"])
            if "min_score" in data:
                app.set_min_score(data["min_score"])
            if "custom_model_url" in data:
                app.settings.custom_model_url = str(data["custom_model_url"])
            if "example_label" in data:
                app.settings.example_label = str(data["example_label"])
            return app.settings.as_dict()

        return None


def start_control_server(app, address: str = ADDRESS_SERVER, port: int = PORT_SERVER) -> ControlServer:
    """
    Start the control server on a daemon thread.

    Returns:
        The running server; call shutdown() on it to stop
    """
    server = ControlServer((address, port), app)
    thread = threading.Thread(target=server.serve_forever, name="control-server", daemon=True)
    thread.start()
    logger.info(f"Control server started on {address}:{server.server_address[1]}")
    return server
