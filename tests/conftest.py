from __future__ import annotations

import pytest
from PySide6.QtCore import QCoreApplication


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """One QCoreApplication for the whole run; QTimer needs it."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
