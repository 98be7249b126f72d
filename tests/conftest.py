"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.access import RegistryEntry  # noqa: E402
from storage.database import Database, RegistryError  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  device_id: 0
  resolution: [640, 480]
  fps: 30

detection:
  model: "models/best.pt"
  sampling_cadence: 3

tracking:
  confirmation_threshold: 3
  tracker_timeout: 10

access:
  cooldown_window: 15.0
  cooldown_retention: 60.0

storage:
  local_database_path: "data/test.sqlite"
  log_retention_days: 7

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "detection": {
            "model": "models/best.pt",
            "conf_threshold": 0.4,
            "sampling_cadence": 3,
        },
        "tracking": {
            "confirmation_threshold": 3,
            "tracker_timeout": 10,
            "proximity_tolerance": 50,
            "region_expansion_fraction": 0.15,
        },
        "access": {
            "cooldown_window": 15.0,
            "cooldown_retention": 60.0,
            "max_edit_distance": 3,
        },
        "storage": {
            "local_database_path": "data/test.sqlite",
            "log_retention_days": 30,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def temp_db():
    """Create a temporary database file path."""
    fd, path = tempfile.mkstemp(suffix=".sqlite")
    os.close(fd)
    os.unlink(path)
    yield path
    try:
        os.unlink(path)
    except OSError:
        pass


@pytest.fixture
def registry(temp_db):
    """Initialized SQLite registry with one active vehicle."""
    db = Database(temp_db)
    db.initialize()
    db.add_vehicle("POX4G21", "Carlos", vehicle_model="Civic")
    yield db
    db.close()


@pytest.fixture
def blank_frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)


class FakeRegistry:
    """In-memory registry double with optional failure injection."""

    def __init__(self, entries=None, fail_with=None, log_ok=True):
        self.entries = list(entries or [])
        self.fail_with = fail_with
        self.log_ok = log_ok
        self.logged = []
        self.closed = False

    def find_exact(self, code):
        if self.fail_with:
            raise RegistryError(self.fail_with)
        for e in self.entries:
            if e.code == code:
                return e
        return None

    def find_all_active(self):
        if self.fail_with:
            raise RegistryError(self.fail_with)
        return [e for e in self.entries if e.active]

    def log_decision(self, decision):
        self.logged.append(decision)
        return self.log_ok

    def close(self):
        self.closed = True


@pytest.fixture
def fake_registry():
    return FakeRegistry([
        RegistryEntry(entry_id=1, code="POX4G21", owner_name="Carlos", vehicle_model="Civic"),
    ])
