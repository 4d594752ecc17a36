import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtWidgets import QApplication


def svg_bytes(width=400, height=300, fill="#ff0000"):
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}">'
        f'<rect x="0" y="0" width="{width}" height="{height}" fill="{fill}"/>'
        f"</svg>"
    ).encode()


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Qt needs an application object before painting or creating widgets."""
    app = QApplication.instance() or QApplication(["svgtail-tests"])
    yield app


@pytest.fixture()
def svg_file(tmp_path):
    path = tmp_path / "drawing.svg"
    path.write_bytes(svg_bytes())
    return path
