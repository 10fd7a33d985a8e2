#!/usr/bin/env python3
"""
LiveCam - Real-time Camera Classification

Main entry point for running the live camera view.
"""

import argparse
import logging
import sys

from livecam.app import LiveCamApp
from livecam.backend_interface.server import start_control_server
from livecam.backend_interface.server_settings import ADDRESS_SERVER, PORT_SERVER
from livecam.core.display import WindowDisplay
from livecam.core.errors import LiveCamError
from livecam.core.frame_source import CameraFrameSource
from livecam.core.settings import DB_PATH, DEFAULT_K, DEFAULT_MIN_SCORE, WEBCAM_ID, configure_logging, LiveSettings
from livecam.knn.storage import SqliteKeyValueStore


logger = logging.getLogger("livecam")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Real-time camera classification')
    parser.add_argument('--webcam', type=int, default=WEBCAM_ID,
                        help=f'Webcam device ID (default: {WEBCAM_ID})')
    parser.add_argument('--model-url', type=str, default='',
                        help='URL or path of a custom Keras classifier')
    parser.add_argument('--label', type=str, default='',
                        help="Label attached to examples captured with 'a'")
    parser.add_argument('--k', type=int, default=DEFAULT_K,
                        help=f'Number of neighbours for k-NN (default: {DEFAULT_K})')
    parser.add_argument('--min-score', type=float, default=DEFAULT_MIN_SCORE,
                        help=f'Detector confidence threshold (default: {DEFAULT_MIN_SCORE})')
    parser.add_argument('--db', type=str, default=DB_PATH,
                        help=f'SQLite file holding the saved dataset (default: {DB_PATH})')
    parser.add_argument('--port', type=int, default=PORT_SERVER,
                        help=f'Control server port, 0 disables it (default: {PORT_SERVER})')
    parser.add_argument('--no-display', action='store_true',
                        help='Run without an OpenCV window')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable debug logging')
    return parser.parse_args(argv)


def main(argv=None):
    """Run the live camera view."""
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = LiveSettings(min_score=args.min_score, k=args.k,
                                custom_model_url=args.model_url, example_label=args.label)
    except ValueError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    app = LiveCamApp(
        frame_source=CameraFrameSource(args.webcam),
        kv_store=SqliteKeyValueStore(args.db),
        settings=settings,
        display=None if args.no_display else WindowDisplay(),
    )

    server = None
    if args.port:
        server = start_control_server(app, ADDRESS_SERVER, args.port)

    print("Starting LiveCam...")
    print("Keys: q quit, d detector, c custom model, m load MobileNet, n toggle k-NN,")
    print("      a add example, s save, l load, x clear, e export, p pause/resume")

    try:
        app.start_camera()
    except LiveCamError as ex:
        logger.error(f"Camera unavailable: {ex}")

    try:
        app.run_forever()
    except KeyboardInterrupt:  # Stop by pressing Ctrl+C
        pass
    finally:
        if server is not None:
            server.shutdown()
        app.shutdown()
        print("\n\nBye!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
