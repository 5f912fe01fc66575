"""
Deal With It GIF generator backend

Places pixel-art sunglasses on the faces found in a photo and renders an
animated GIF of them sliding into place:
- Face landmarks via face_recognition
- Overlay placement from inter-eye distance and nose position
- Id-addressed overlay editing with a workflow state machine
- GIF rendering in an isolated worker process
"""

__version__ = "1.0.0"
