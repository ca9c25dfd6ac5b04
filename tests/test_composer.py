"""End-to-end tests for the collage composer and layout engine."""
from __future__ import annotations

import io
import threading

import pytest
from PIL import Image

from collage_engine.cache import ResultCache
from collage_engine.composer import CollageComposer, should_render_adjustment
from collage_engine.layout import LayoutEngine
from collage_engine.models import CollageRequest, LayoutSpec
from collage_engine.workers import LoadedImage
from imaging.image_operations import Adjustment
from imaging.image_processor import make_placeholder


def assert_color_close(actual, expected, tolerance=6):
    assert all(abs(a - e) <= tolerance for a, e in zip(actual, expected)), (actual, expected)


def solid(color, size=(400, 400)):
    return LoadedImage(f"test:{color}", Image.new("RGB", size, color))


@pytest.fixture
def composer():
    composer = CollageComposer()
    yield composer
    composer.close()


def test_horizontal_two_places_images_side_by_side():
    surface = LayoutEngine().render(
        [solid("red"), solid("blue")],
        [Adjustment(), Adjustment()],
        LayoutSpec(layout="horizontal-2", spacing=10),
        1200,
        1200,
    )
    assert surface.size == (1200, 1200)
    assert surface.getpixel((300, 600)) == (255, 0, 0)
    assert surface.getpixel((900, 600)) == (0, 0, 255)
    assert surface.getpixel((5, 5)) == (255, 255, 255)
    assert surface.getpixel((600, 600)) == (255, 255, 255)


def test_borders_and_missing_cells_render_as_background_and_border():
    surface = LayoutEngine().render(
        [solid("red")],
        [Adjustment()],
        LayoutSpec(layout="grid-2x2", spacing=10, border_width=5,
                   border_color="#000000", background_color="#00ff00"),
        1200,
        1200,
    )
    assert surface.getpixel((12, 300)) == (0, 0, 0)
    assert surface.getpixel((300, 300)) == (255, 0, 0)
    # Second slot has no image: its frame is never drawn
    assert surface.getpixel((900, 300)) == (0, 255, 0)


def test_placeholder_cell_shows_background():
    placeholder = LoadedImage("data:broken", make_placeholder(), placeholder=True)
    surface = LayoutEngine().render(
        [placeholder, solid("blue")],
        [Adjustment(), Adjustment()],
        LayoutSpec(layout="vertical-2", background_color="#123456"),
        1200,
        1200,
    )
    assert surface.getpixel((600, 300)) == (0x12, 0x34, 0x56)
    assert surface.getpixel((600, 900)) == (0, 0, 255)


def test_rounded_corners_use_background():
    surface = LayoutEngine().render(
        [solid("red")],
        [Adjustment()],
        LayoutSpec(layout="vertical-2", spacing=0, corner_radius=40, background_color="#0000ff"),
        400,
        400,
    )
    assert surface.getpixel((0, 0)) == (0, 0, 255)
    assert surface.getpixel((200, 100)) == (255, 0, 0)


def test_compose_returns_jpeg_of_canvas_size(composer, data_url):
    output = composer.compose([data_url(color="red"), data_url(color="blue")], layout="horizontal-2")
    assert output is not None
    assert (output.width, output.height) == (1200, 1200)
    assert output.media_type == "image/jpeg"
    with Image.open(io.BytesIO(output.data)) as img:
        assert img.format == "JPEG"
        assert img.size == (1200, 1200)
        assert_color_close(img.getpixel((300, 600)), (255, 0, 0))
        assert_color_close(img.getpixel((900, 600)), (0, 0, 255))


@pytest.mark.parametrize("aspect_ratio, size", [("4:3", (1200, 900)), ("16:9", (1600, 900)), ("2:1", (1200, 1200))])
def test_aspect_ratio_selects_canvas(composer, data_url, aspect_ratio, size):
    output = composer.compose([data_url()], aspect_ratio=aspect_ratio)
    assert (output.width, output.height) == size


def test_empty_input_returns_none(composer):
    assert composer.compose([]) is None
    assert composer.render_count == 0


def test_identical_requests_hit_the_cache(composer, data_url):
    images = [data_url(color="red"), data_url(color="blue")]
    first = composer.compose(images, layout="horizontal-2", spacing=10)
    second = composer.compose(images, layout="horizontal-2", spacing=10.0)
    assert second is first
    assert composer.render_count == 1


def test_returning_to_earlier_settings_is_served_from_cache(composer, data_url):
    images = [data_url(color="red"), data_url(color="blue")]
    first = composer.compose(images, layout="horizontal-2", spacing=10)
    changed = composer.compose(images, layout="horizontal-2", spacing=11)
    again = composer.compose(images, layout="horizontal-2", spacing=10)

    assert changed.fingerprint != first.fingerprint
    assert again is first
    assert composer.render_count == 2


def test_bypass_skips_cache_reads_and_writes(composer, data_url):
    images = [data_url()]
    composer.compose(images, bypass_cache=True)
    composer.compose(images, bypass_cache=True)
    assert composer.render_count == 2
    assert len(composer.cache) == 0


def test_output_is_deterministic(data_url):
    images = [data_url(color="red"), data_url(size=(30, 90), color="blue"), data_url(color="green")]
    with CollageComposer() as a, CollageComposer() as b:
        first = a.compose(images, layout="t-shape", corner_radius=12, adjustments=[{"zoom": 1.4}])
        second = b.compose(images, layout="t-shape", corner_radius=12, adjustments=[{"zoom": 1.4}])
    assert first.data == second.data
    assert first.fingerprint == second.fingerprint


def test_corrupt_image_does_not_abort_render(composer, data_url):
    images = [data_url(), data_url(color="blue"), "data:image/png;base64,AAAA", data_url(color="green")]
    output = composer.compose(images, layout="grid-2x2")
    assert output is not None
    assert composer.render_count == 1


def test_small_cache_evicts_oldest_result(data_url):
    images = [data_url()]
    with CollageComposer(cache=ResultCache(max_size=3)) as composer:
        first = composer.compose(images, spacing=1)
        for spacing in (2, 3, 4):
            composer.compose(images, spacing=spacing)
        assert len(composer.cache) == 3

        again = composer.compose(images, spacing=1)
        assert again is not first
        assert again.data == first.data
        assert composer.render_count == 5


def test_invalid_request_rejected_before_rendering(composer, data_url):
    with pytest.raises(ValueError):
        composer.compose([data_url()], layout="mosaic-5")
    with pytest.raises(ValueError):
        composer.compose([data_url()], spacing=-1)
    assert composer.render_count == 0


def test_compose_async_invokes_callback(composer, data_url):
    done = threading.Event()
    received = []

    def callback(output):
        received.append(output)
        done.set()

    request = CollageRequest.build([data_url()], layout="vertical-2")
    future = composer.compose_async(request, callback)
    output = future.result(timeout=10)

    assert done.wait(timeout=10)
    assert received == [output]


def test_refinement_events_are_published(composer, data_url):
    seen = threading.Event()
    composer.channel.subscribe(lambda event: seen.set())
    composer.compose([data_url(size=(40, 80))])
    assert seen.wait(timeout=10)


def test_template_spec_feeds_compose(composer, data_url):
    spec = LayoutSpec.from_template("grid-3x3", background_color="#000000")
    request = CollageRequest(images=(data_url(),) * 9, spec=spec)
    output = composer.compose_request(request)
    assert output is not None
    assert "grid-3x3_5_" in output.fingerprint


@pytest.mark.parametrize(
    "previous, key, value, expected",
    [
        (None, "zoom", 1.01, False),
        (None, "zoom", 1.03, True),
        (1.5, "zoom", 1.49, False),
        (None, "offsetX", 1, False),
        (0, "offsetX", 3, True),
        (4, "offsetY", 5, True),
        (6, "offsetY", 7, False),
    ],
)
def test_should_render_adjustment(previous, key, value, expected):
    assert should_render_adjustment(previous, key, value) is expected
