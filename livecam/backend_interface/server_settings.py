#!/usr/bin/env python3

"""
Server definitions
"""


# Address
ADDRESS_SERVER = "0.0.0.0"

# Port of the server
PORT_SERVER = 8000

# Camera
CAMERA_START = "/camera/start"
CAMERA_STOP = "/camera/stop"
CAMERA_PAUSE = "/camera/pause"
CAMERA_RESUME = "/camera/resume"

# Models and modes
LOAD_DETECTOR = "/models/detector"
LOAD_CUSTOM_MODEL = "/models/custom"
LOAD_FEATURE_EXTRACTOR = "/models/feature-extractor"
SET_NEAREST_NEIGHBOR = "/knn"
SET_MODE = "/mode"

# Training data
ADD_EXAMPLE = "/examples"
DATASET_SAVE = "/dataset/save"
DATASET_LOAD = "/dataset/load"
DATASET_CLEAR = "/dataset/clear"
DATASET_IMPORT = "/dataset/import"
DATASET_EXPORT = "/dataset/export"

# Settings and state
SETTINGS = "/settings"
STATUS = "/status"

# Store the different routes
GET_REQUESTS = [STATUS, DATASET_EXPORT]
POST_REQUESTS = [
    CAMERA_START, CAMERA_STOP, CAMERA_PAUSE, CAMERA_RESUME,
    LOAD_DETECTOR, LOAD_CUSTOM_MODEL, LOAD_FEATURE_EXTRACTOR,
    SET_NEAREST_NEIGHBOR, SET_MODE,
    ADD_EXAMPLE, DATASET_SAVE, DATASET_LOAD, DATASET_CLEAR, DATASET_IMPORT,
    SETTINGS,
]

# Status codes
OK = 200
INVALID = 400
NOT_FOUND = 404
