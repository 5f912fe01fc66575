import base64

import numpy as np
import pytest

from dealwithit.config import Settings, load_settings
from dealwithit.core.styles import StyleCatalog, UnknownStyleError, catalog
from dealwithit.models.domain import (
    Direction,
    FinalFrameDelay,
    LoopMode,
    LoopSettings,
    RenderConfiguration,
    RenderConfigurationError,
)
from dealwithit.utils.image import (
    ImageDecodingError,
    ImageFormatError,
    alpha_composite,
    decode_base64_bytes,
    decode_image_bytes,
    fit_within,
    flip_image,
)
from dealwithit.utils.messages import (
    HEDGEHOG_MESSAGE,
    HEDGEHOG_MODE,
    NORMAL_MODE,
    SUCCESS_MESSAGES,
    detect_mode,
    generate_output_filename,
    get_success_message,
)


class TestRenderConfiguration:
    def test_default_frame_delays(self):
        assert RenderConfiguration().frame_delays() == [100] * 14 + [1000]

    def test_final_delay_disabled(self):
        configuration = RenderConfiguration(frame_count=3, final_frame_delay=FinalFrameDelay(enabled=False))
        assert configuration.frame_delays() == [100, 100, 100]

    def test_validate_lists_every_problem(self):
        configuration = RenderConfiguration(frame_count=0, output_max_dimension=0)
        with pytest.raises(RenderConfigurationError) as excinfo:
            configuration.validate()
        assert "frame_count" in str(excinfo.value)
        assert "output_max_dimension" in str(excinfo.value)

    def test_loop_count_only_matters_for_finite_loops(self):
        RenderConfiguration(loop=LoopSettings(mode=LoopMode.OFF, count=0)).validate()
        with pytest.raises(RenderConfigurationError):
            RenderConfiguration(loop=LoopSettings(mode=LoopMode.FINITE, count=0)).validate()

    def test_dict_keys(self):
        data = RenderConfiguration().to_dict()
        assert data == {
            'numberOfFrames': 15,
            'frameDelay': 100,
            'lastFrameDelay': {'enabled': True, 'value': 1000},
            'looping': {'mode': "infinite", 'loops': 5},
            'size': 160,
        }
        assert RenderConfiguration.from_dict({'size': 320}).output_max_dimension == 320

    @pytest.mark.parametrize("enabled", ["false", "true", 0, 1, None])
    def test_final_delay_flag_must_be_boolean(self, enabled):
        with pytest.raises(ValueError):
            RenderConfiguration.from_dict({'lastFrameDelay': {'enabled': enabled, 'value': 1000}})

    def test_final_delay_flag_false(self):
        configuration = RenderConfiguration.from_dict({'lastFrameDelay': {'enabled': False, 'value': 1000}})
        assert configuration.final_frame_delay.enabled is False


class TestStyles:
    def test_reference_geometry(self):
        classic = catalog.get("classic")
        assert (classic.reference_size.width, classic.reference_size.height) == (144.0, 32.0)
        assert classic.reference_eyes_distance == 80.0
        assert (classic.anchor_offset.x, classic.anchor_offset.y) == (72.0, 20.0)

    def test_every_style_shares_horizontal_proportions(self):
        ratios = {
            catalog.get(name).reference_size.width / catalog.get(name).reference_eyes_distance
            for name in catalog.names
        }
        assert len(ratios) == 1

    def test_assets_rotate_with_direction(self):
        assert catalog.asset("classic").shape == (32, 144, 4)
        assert catalog.asset("classic", Direction.RIGHT).shape == (144, 32, 4)
        assert catalog.asset("classic", Direction.DOWN).shape == (32, 144, 4)

    def test_flip_mirrors_asset(self):
        plain = catalog.asset("bold")
        flipped = catalog.asset("bold", flip_vertical=True)
        assert np.array_equal(flipped, plain[::-1])

    def test_asset_is_a_copy(self):
        asset = catalog.asset("classic")
        asset[:] = 0
        assert catalog.asset("classic").any()

    def test_unknown_style(self):
        with pytest.raises(UnknownStyleError):
            catalog.get("monocle")
        with pytest.raises(UnknownStyleError):
            StyleCatalog([], default="classic")


class TestImageUtils:
    def test_decode_base64_with_and_without_prefix(self):
        payload = base64.b64encode(b"hello").decode()
        assert decode_base64_bytes(payload) == b"hello"
        assert decode_base64_bytes(f"data:text/plain;base64,{payload}") == b"hello"

    def test_decode_base64_rejects_garbage(self):
        with pytest.raises(ImageDecodingError):
            decode_base64_bytes("***")

    def test_decode_image_rejects_non_images(self):
        with pytest.raises(ImageFormatError):
            decode_image_bytes(b"")
        with pytest.raises(ImageFormatError):
            decode_image_bytes(b"GIF? no.")

    def test_decode_image(self, image_bytes):
        assert decode_image_bytes(image_bytes).shape == (300, 400, 3)

    @pytest.mark.parametrize("size, expected", [
        ((400, 300), (160, 120)),
        ((300, 400), (120, 160)),
        ((100, 100), (160, 160)),
        ((1000, 2), (160, 1)),
    ])
    def test_fit_within(self, size, expected):
        assert fit_within(size[0], size[1], 160) == expected

    def test_flip_image(self):
        image = np.arange(6, dtype=np.uint8).reshape(2, 3)
        assert np.array_equal(flip_image(image, horizontal=True), image[:, ::-1])
        assert np.array_equal(flip_image(image, vertical=True), image[::-1])
        assert np.array_equal(flip_image(image, True, True), image[::-1, ::-1])
        assert flip_image(image) is image

    def test_alpha_composite_blends_and_clips(self):
        base = np.zeros((4, 4, 3), dtype=np.uint8)
        sprite = np.zeros((2, 2, 4), dtype=np.uint8)
        sprite[..., :3] = 200
        sprite[0, :, 3] = 255
        sprite[1, :, 3] = 0
        alpha_composite(base, sprite, 3, -1)
        # only the bottom-left sprite pixel lands on the base, and it is transparent
        assert not base.any()

        alpha_composite(base, sprite, 0, 0)
        assert (base[0, 0:2] == 200).all()
        assert not base[1].any()


class TestMessages:
    def test_success_messages_progress_and_repeat(self):
        assert get_success_message(1) == "Deal with it!"
        assert get_success_message(2) == SUCCESS_MESSAGES[1]
        assert get_success_message(99) == SUCCESS_MESSAGES[-1]

    def test_hedgehog_mode(self):
        assert detect_mode("My-Hedgehog.png") == HEDGEHOG_MODE
        assert detect_mode("cat.png") == NORMAL_MODE
        assert get_success_message(1, HEDGEHOG_MODE) == HEDGEHOG_MESSAGE
        assert get_success_message(2, HEDGEHOG_MODE) == SUCCESS_MESSAGES[1]

    @pytest.mark.parametrize("name, expected", [
        ("photo.jpg", "photo-dealwithit.gif"),
        ("archive.tar.png", "archive.tar-dealwithit.gif"),
        ("", "image-dealwithit.gif"),
    ])
    def test_output_filename(self, name, expected):
        assert generate_output_filename(name) == expected


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.server.port == 3002
        assert settings.worker.backend == "process"
        assert settings.render.to_configuration() == RenderConfiguration()

    def test_yaml_and_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(
            "server:\n"
            "  port: 8080\n"
            "render:\n"
            "  frame_count: 20\n"
            "  loop_mode: finite\n"
            "  loop_count: 3\n"
            "max_sessions: 5\n"
        )
        monkeypatch.setenv("DEALWITHIT_LOG_LEVEL", "debug")
        monkeypatch.setenv("DEALWITHIT_WORKER_BACKEND", "thread")
        settings = load_settings(path)
        assert settings.server.port == 8080
        assert settings.server.log_level == "DEBUG"
        assert settings.worker.backend == "thread"
        assert settings.max_sessions == 5
        configuration = settings.render.to_configuration()
        assert configuration.frame_count == 20
        assert configuration.loop == LoopSettings(mode=LoopMode.FINITE, count=3)

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEALWITHIT_PORT", "9000")
        settings = load_settings(tmp_path / "absent.yaml")
        assert settings.server.port == 9000

    def test_invalid_render_defaults_are_refused(self):
        with pytest.raises(ValueError):
            Settings(render={'frame_count': 1})
