"""Face landmark detection.

This module turns a decoded image into a list of faces, each a list of
keypoints in natural image coordinates ordered as
``[left_eye, right_eye, nose_tip]``. It uses the dlib-backed
face_recognition landmark model.
"""

import logging
from typing import List, Tuple

import cv2
import numpy as np
import face_recognition

logger = logging.getLogger(__name__)

Keypoint = Tuple[float, float]

KEYPOINT_FEATURES = ("left_eye", "right_eye", "nose_tip")


class FaceDetectionError(Exception):
    """Exception raised when the landmark model fails on an image."""
    pass


def _centroid(points: List[Tuple[int, int]]) -> Keypoint:
    coords = np.asarray(points, dtype=np.float64)
    return float(coords[:, 0].mean()), float(coords[:, 1].mean())


class FaceLandmarkDetector:
    """Finds faces and reduces their landmarks to eye and nose keypoints."""

    def __init__(self, model: str = "large", upsample: int = 1):
        self.model = model
        self.upsample = upsample

    def estimate_faces(self, image: np.ndarray) -> List[List[Keypoint]]:
        """Detect faces in a BGR image.

        Args:
            image: Input image in BGR format.

        Returns:
            One keypoint list per face. An empty list means no face was
            found, which is not an error.

        Raises:
            FaceDetectionError: If the landmark model fails.
        """
        if image is None:
            raise FaceDetectionError("Input image is None")

        try:
            # Convert BGR to RGB (face_recognition uses RGB)
            rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
            locations = face_recognition.face_locations(
                rgb_image, number_of_times_to_upsample=self.upsample, model="hog"
            )
            landmarks = face_recognition.face_landmarks(
                rgb_image, face_locations=locations, model=self.model
            )
        except Exception as e:
            raise FaceDetectionError(f"Failed to detect faces: {str(e)}")

        faces = []
        for face in landmarks:
            if not all(face.get(feature) for feature in KEYPOINT_FEATURES):
                logger.debug("Skipping face without eye/nose landmarks")
                continue
            faces.append([_centroid(face[feature]) for feature in KEYPOINT_FEATURES])

        logger.info(f"Found {len(faces)} face(s) in {image.shape[1]}x{image.shape[0]} image")
        return faces
