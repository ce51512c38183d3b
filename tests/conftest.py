"""Shared test fixtures for claude-roi."""

import os
import sys
from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def qapp():
    """Create a QGuiApplication for tests that need Qt."""
    os.environ["QT_QPA_PLATFORM"] = "offscreen"
    from PySide6.QtGui import QGuiApplication

    app = QGuiApplication.instance()
    if app is None:
        app = QGuiApplication(sys.argv or ["test"])
    yield app


@pytest.fixture
def isolated_settings(qapp, tmp_path):
    """QSettings backed by an INI file in a temporary directory."""
    from PySide6.QtCore import QSettings
    return QSettings(str(tmp_path / "config" / "claude-roi.ini"), QSettings.IniFormat)


@pytest.fixture
def tmp_projects_dir(tmp_path) -> Path:
    """Create a temporary Claude projects directory structure."""
    projects_dir = tmp_path / ".claude" / "projects"
    project_dir = projects_dir / "-home-wiz-projects-myapp"
    project_dir.mkdir(parents=True)
    return projects_dir
