import os
from pathlib import Path

import pytest
from PIL import Image

from tinytailor.config import TinyTailorConfig


def make_image(path: Path, width: int, height: int, color=(200, 40, 40), fmt=None) -> Path:
    """Write a solid-colour test image, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = "RGBA" if len(color) == 4 else "RGB"
    Image.new(mode, (width, height), color).save(path, fmt)
    return path


def make_noise_png(path: Path, width: int, height: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    image.save(path, "PNG", optimize=True)
    return path


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "site"
    (root / "public" / "images").mkdir(parents=True)
    (root / "resources" / "views").mkdir(parents=True)
    return root.resolve()


@pytest.fixture
def config(project):
    return TinyTailorConfig(project_root=project, public_root=project / "public")


@pytest.fixture
def image_factory():
    return make_image
