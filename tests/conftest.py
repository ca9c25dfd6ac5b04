"""Shared fixtures for building image references."""
from __future__ import annotations

import base64
import io
from pathlib import Path

import pytest
from PIL import Image


def encode_data_url(size=(40, 40), color="red", fmt="PNG", mode="RGB") -> str:
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    media = "jpeg" if fmt == "JPEG" else fmt.lower()
    return f"data:image/{media};base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def data_url():
    """Factory returning ``data:`` URLs for solid-colour images."""
    return encode_data_url


@pytest.fixture
def image_file(tmp_path):
    """Factory writing a solid-colour image to ``tmp_path``."""

    def _create(name="img.png", size=(40, 40), color="red") -> Path:
        path = tmp_path / name
        Image.new("RGB", size, color=color).save(path)
        return path

    return _create
