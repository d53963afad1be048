"""Coarse face similarity scoring.

This is a global luminance heuristic, not a face recognizer: there is no
face detection or alignment, and the score is sensitive to pose and
occlusion. Treat a match as a low-assurance signal that only counts
together with the geofence check.
"""
import base64
import binascii
import io
from dataclasses import dataclass
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from attendance_engine.constants import FACE_MATCH_THRESHOLD, FACE_SAMPLE_SIZE
from attendance_engine.errors import BiometricError

ImageInput = Union[bytes, str, Image.Image]

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


@dataclass
class SimilarityResult:
    """Similarity outcome. Lower score means more alike."""
    match: bool
    score: float

    def to_dict(self):
        return {'match': self.match, 'score': round(self.score, 2)}


def decode_image(image: ImageInput) -> Image.Image:
    """Decode raw bytes, a base64 string or a ``data:`` URL."""
    if isinstance(image, Image.Image):
        return image

    if isinstance(image, str):
        if image.startswith('data:'):
            image = image.split(',', 1)[-1]
        try:
            image = base64.b64decode(image, validate=False)
        except (binascii.Error, ValueError):
            raise BiometricError("Could not decode face image.", 400)

    if not isinstance(image, (bytes, bytearray)):
        raise BiometricError("Face image must be an encoded image.", 400)

    try:
        decoded = Image.open(io.BytesIO(image))
        decoded.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        raise BiometricError("Could not decode face image.", 400)
    return decoded


class SimilarityService:
    """Mirror-tolerant, brightness-normalized luminance comparison."""

    def __init__(self, threshold: float = FACE_MATCH_THRESHOLD, size: int = FACE_SAMPLE_SIZE):
        self.threshold = threshold
        self.size = size

    def luminance(self, image: ImageInput) -> np.ndarray:
        """Downsample to ``size`` x ``size`` and return luminance as floats."""
        rgb = decode_image(image).convert('RGB').resize((self.size, self.size))
        pixels = np.asarray(rgb, dtype=np.float64)
        return pixels @ LUMA_WEIGHTS

    @staticmethod
    def alignment_score(reference: np.ndarray, candidate: np.ndarray) -> float:
        """Mean absolute difference after matching mean brightness."""
        shifted = candidate + (reference.mean() - candidate.mean())
        shifted = np.clip(shifted, 0, 255)
        return float(np.abs(reference - shifted).mean())

    def compare(self, reference: ImageInput, captured: ImageInput) -> SimilarityResult:
        ref = self.luminance(reference)
        candidate = self.luminance(captured)

        # front cameras may or may not mirror the frame
        score = min(
            self.alignment_score(ref, candidate),
            self.alignment_score(ref, np.fliplr(candidate))
        )
        return SimilarityResult(match=score <= self.threshold, score=score)
