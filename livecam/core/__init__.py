"""
Core functionality for LiveCam.
"""
