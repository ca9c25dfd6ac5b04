"""Tests for the parallel image loader and background subject refiner."""
from __future__ import annotations

import logging

import pytest

from collage_engine.events import RefinementChannel
from collage_engine.models import SubjectRefined
from collage_engine.workers import ImageLoader, LoadedImage, SubjectRefiner
from imaging.image_operations import Adjustment, Rect
from imaging.image_processor import image_identity, make_placeholder
from imaging.subject import HeuristicSubjectLocator


@pytest.fixture
def loader():
    loader = ImageLoader(max_workers=3)
    yield loader
    loader.shutdown()


@pytest.fixture
def channel():
    return RefinementChannel()


@pytest.fixture
def refiner(channel):
    refiner = SubjectRefiner(channel)
    yield refiner
    refiner.shutdown()


def test_results_follow_input_order(loader, data_url) -> None:
    refs = [data_url(size=(10 + i, 10)) for i in range(6)]
    loaded = loader.load_all(refs)

    assert [item.size for item in loaded] == [(10 + i, 10) for i in range(6)]
    assert [item.identity for item in loaded] == [image_identity(ref) for ref in refs]


def test_corrupt_reference_becomes_placeholder(loader, data_url, caplog) -> None:
    refs = [data_url(), "data:image/png;base64,AAAA", data_url(color="blue")]
    with caplog.at_level(logging.WARNING):
        loaded = loader.load_all(refs)

    assert [item.placeholder for item in loaded] == [False, True, False]
    assert loaded[1].size == (300, 300)
    assert "using placeholder" in caplog.text
    assert image_identity(refs[1]) not in loader.cache


def test_decoded_images_are_reused(loader, data_url) -> None:
    ref = data_url()
    first = loader.load_all([ref])[0]
    second = loader.load_all([ref])[0]

    assert first is second
    assert len(loader.cache) == 1


def test_empty_input_returns_empty_list(loader) -> None:
    assert loader.load_all([]) == []


def test_refiner_publishes_once_per_cell(refiner, channel, loader, data_url) -> None:
    events: list[SubjectRefined] = []
    channel.subscribe(events.append)
    loaded = loader.load_all([data_url(size=(40, 80))])[0]
    cell = Rect(10, 10, 100, 100)

    future = refiner.submit(loaded, cell, Adjustment())
    assert future is not None
    event = future.result(timeout=5)

    assert events == [event]
    assert event.identity == loaded.identity
    assert event.region.height == 32
    assert 0 <= event.crop.y <= 80 - event.crop.height
    assert refiner.submit(loaded, cell, Adjustment()) is None
    assert refiner.submit(loaded, cell, Adjustment(zoom=1.2)) is not None


def test_refiner_skips_placeholders(refiner) -> None:
    placeholder = LoadedImage("data:broken", make_placeholder(), placeholder=True)
    assert refiner.submit(placeholder, Rect(0, 0, 10, 10), Adjustment()) is None


def test_channel_isolates_failing_listener(channel, caplog) -> None:
    received = []

    def broken(event):
        raise RuntimeError("boom")

    channel.subscribe(broken)
    unsubscribe = channel.subscribe(received.append)
    event = SubjectRefined("key", "identity", Rect(0, 0, 1, 1), None)  # type: ignore[arg-type]

    with caplog.at_level(logging.ERROR):
        channel.publish(event)

    assert received == [event]
    assert "Refinement listener failed" in caplog.text

    unsubscribe()
    assert channel.listener_count == 1


def test_refiner_logs_locator_failure(refiner, channel, loader, data_url, monkeypatch, caplog) -> None:
    def explode(self, image):
        raise RuntimeError("detector offline")

    monkeypatch.setattr(HeuristicSubjectLocator, "locate", explode)
    events = []
    channel.subscribe(events.append)
    loaded = loader.load_all([data_url()])[0]

    with caplog.at_level(logging.ERROR):
        future = refiner.submit(loaded, Rect(0, 0, 50, 50), Adjustment())
        assert future.result(timeout=5) is None

    assert events == []
    assert "Subject refinement error" in caplog.text
