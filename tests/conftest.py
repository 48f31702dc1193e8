from __future__ import annotations

import os
import pytest
from hypothesis import settings
from PySide6.QtCore import QCoreApplication

# File-backed property tests are I/O bound; wall-clock deadlines make them flaky
settings.register_profile("default", deadline=None)
settings.load_profile("default")


@pytest.fixture(scope="session", autouse=True)
def _qt_app():
    # Timers and signals need an application instance, not a display
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
