"""Perception capabilities: camera, object detector, face landmarks, head pose."""
