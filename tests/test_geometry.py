import random

import pytest

from dealwithit.core.geometry import (
    DEFAULT_POSITION,
    default_overlay,
    eyes_distance,
    place_overlay,
    resolve_overlays,
)
from dealwithit.core.styles import catalog


class FixedChoice:
    def __init__(self, value):
        self.value = value

    def choice(self, options):
        assert self.value in options
        return self.value


def test_single_face_always_gets_default_style():
    for seed in range(20):
        rng = random.Random(seed)
        face = [
            (rng.uniform(0, 300), rng.uniform(0, 300)),
            (rng.uniform(0, 300), rng.uniform(0, 300)),
            (rng.uniform(0, 300), rng.uniform(0, 300)),
        ]
        overlays = resolve_overlays([face], rng=rng)
        assert len(overlays) == 1
        assert overlays[0].style == catalog.default_style


def test_zero_faces_yields_one_default_overlay():
    overlays = resolve_overlays([], scale_x=1.0, scale_y=1.0)
    assert len(overlays) == 1
    overlay = overlays[0]
    expected = default_overlay()
    assert overlay.position == DEFAULT_POSITION
    assert overlay.size == expected.size
    assert overlay.style == expected.style


def test_placement_from_keypoints():
    # classic: 144x32 reference, eyes 80 apart, anchor (72, 20)
    face = [(100.0, 200.0), (180.0, 200.0), (140.0, 230.0)]
    overlay = place_overlay(face, "classic")
    assert overlay.size.width == pytest.approx(144.0)
    assert overlay.size.height == pytest.approx(32.0)
    assert overlay.position.x == pytest.approx(68.0)
    assert overlay.position.y == pytest.approx(180.0)


def test_placement_applies_display_scale():
    face = [(100.0, 200.0), (180.0, 200.0), (140.0, 230.0)]
    overlay = place_overlay(face, "classic", scale_x=0.5, scale_y=0.5)
    assert overlay.size.width == pytest.approx(72.0)
    assert overlay.size.height == pytest.approx(16.0)
    assert overlay.position.x == pytest.approx(34.0)
    assert overlay.position.y == pytest.approx(90.0)


def test_tilted_eyes_use_half_vertical_offset():
    face = [(100.0, 190.0), (180.0, 250.0), (140.0, 230.0)]
    overlay = place_overlay(face, "classic")
    scale = eyes_distance(face) / 80.0
    assert overlay.position.y == pytest.approx(abs((190.0 + 30.0) - 20.0 * scale))


def test_position_is_never_negative():
    face = [(5.0, 5.0), (85.0, 5.0), (10.0, 10.0)]
    overlay = place_overlay(face, "classic")
    assert overlay.position.x >= 0
    assert overlay.position.y >= 0


def test_width_is_linear_in_eye_distance():
    faces = [
        [(0.0, 0.0), (80.0, 0.0), (40.0, 10.0)],
        [(200.0, 0.0), (240.0, 0.0), (220.0, 10.0)],
    ]
    for seed in range(10):
        first, second = resolve_overlays(faces, rng=random.Random(seed))
        assert first.size.width / second.size.width == pytest.approx(2.0)


def test_additional_faces_draw_from_random_source():
    faces = [
        [(0.0, 0.0), (80.0, 0.0), (40.0, 10.0)],
        [(200.0, 0.0), (240.0, 0.0), (220.0, 10.0)],
        [(400.0, 0.0), (440.0, 0.0), (420.0, 10.0)],
    ]
    overlays = resolve_overlays(faces, rng=FixedChoice("neon"))
    assert [overlay.style for overlay in overlays] == ["classic", "neon", "neon"]


def test_seeded_random_source_is_reproducible():
    faces = [[(x, 0.0), (x + 50.0, 0.0), (x + 25.0, 10.0)] for x in (0.0, 100.0, 200.0, 300.0)]
    first = [overlay.style for overlay in resolve_overlays(faces, rng=random.Random(7))]
    second = [overlay.style for overlay in resolve_overlays(faces, rng=random.Random(7))]
    assert first == second


def test_faces_missing_keypoints_are_skipped():
    faces = [[(0.0, 0.0), (80.0, 0.0)], [(0.0, 0.0), (80.0, 0.0), (40.0, 10.0)]]
    overlays = resolve_overlays(faces)
    assert len(overlays) == 1
    assert overlays[0].size.width == pytest.approx(144.0)


def test_coincident_eyes_keep_positive_size():
    face = [(50.0, 50.0), (50.0, 50.0), (50.0, 60.0)]
    overlay = place_overlay(face, "classic")
    assert overlay.size.width > 0
    assert overlay.size.height > 0


def test_every_overlay_gets_a_unique_id():
    faces = [[(x, 0.0), (x + 50.0, 0.0), (x + 25.0, 10.0)] for x in (0.0, 100.0, 200.0)]
    overlays = resolve_overlays(faces, rng=random.Random(1))
    assert len({overlay.id for overlay in overlays}) == 3
