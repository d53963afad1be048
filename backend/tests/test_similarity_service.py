"""Tests for the luminance similarity scorer."""
import base64

import numpy as np
import pytest
from PIL import Image, ImageOps

from attendance_engine.errors import BiometricError
from attendance_engine.services.similarity_service import SimilarityService, decode_image
from tests.conftest import make_image, png_bytes, data_url


@pytest.mark.parametrize('threshold', [0, 1, 115, 255])
def test_identical_image_scores_zero(threshold):
    """An image compared to itself always matches."""
    image = make_image(seed=1)
    result = SimilarityService(threshold=threshold).compare(image, image)
    assert result.score == 0
    assert result.match


def test_mirrored_capture_scores_like_unmirrored():
    """Front-camera mirroring does not change the score."""
    reference = make_image(seed=2)
    mirrored = ImageOps.mirror(reference)
    scorer = SimilarityService()

    assert scorer.compare(reference, mirrored).score == scorer.compare(reference, reference).score


def test_mirror_invariance_against_other_capture():
    scorer = SimilarityService()
    reference = make_image(seed=3)
    captured = make_image(seed=4)

    direct = scorer.compare(reference, captured).score
    mirrored = scorer.compare(reference, ImageOps.mirror(captured)).score
    assert direct == pytest.approx(mirrored)


def test_brightness_shift_is_normalized():
    """A uniformly brighter copy scores (near) zero."""
    base = np.full((64, 64, 3), 100, dtype=np.uint8)
    base[16:48, 16:48] = 60
    brighter = base + 40

    result = SimilarityService().compare(Image.fromarray(base), Image.fromarray(brighter))
    assert result.score == pytest.approx(0, abs=1e-6)


def test_unrelated_images_can_fail_strict_threshold():
    black_white = np.zeros((64, 64, 3), dtype=np.uint8)
    black_white[:32] = 255
    inverted = 255 - black_white

    reference = Image.fromarray(black_white)
    captured = Image.fromarray(inverted)
    result = SimilarityService(threshold=10).compare(reference, captured)
    assert result.score > 10
    assert not result.match


def test_luminance_uses_bt601_weights():
    scorer = SimilarityService()
    pure_red = Image.new('RGB', (64, 64), (255, 0, 0))
    lum = scorer.luminance(pure_red)
    assert lum.shape == (64, 64)
    assert lum[0, 0] == pytest.approx(0.299 * 255)


def test_images_are_downsampled():
    scorer = SimilarityService()
    assert scorer.luminance(make_image(seed=5, size=200)).shape == (64, 64)


def test_accepts_bytes_base64_and_data_url():
    image = make_image(seed=6)
    raw = png_bytes(image)
    scorer = SimilarityService()

    assert scorer.compare(raw, base64.b64encode(raw).decode()).score == 0
    assert scorer.compare(data_url(image), raw).score == 0


def test_undecodable_image_raises():
    with pytest.raises(BiometricError):
        SimilarityService().compare(b'not an image', make_image())


@pytest.mark.parametrize('image', [7, 3.5, None, {'image': 'x'}])
def test_non_image_input_raises(image):
    with pytest.raises(BiometricError) as exc:
        decode_image(image)
    assert exc.value.status_code == 400


def test_oversized_image_raises(monkeypatch):
    """Images past Pillow's decompression-bomb limit are rejected, not crashed on."""
    monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 100)
    with pytest.raises(BiometricError):
        decode_image(png_bytes(make_image(size=64)))
