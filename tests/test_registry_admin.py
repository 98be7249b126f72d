"""
Tests for the registry maintenance tool.
"""

import importlib.util
import os

import pytest

TOOL_PATH = os.path.join(os.path.dirname(__file__), "..", "tools", "registry_admin.py")


@pytest.fixture(scope="module")
def admin():
    spec = importlib.util.spec_from_file_location("registry_admin", TOOL_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_add_and_list(admin, temp_db, capsys):
    assert admin.main(["--db", temp_db, "add", "pox4g21", "Carlos", "--model", "Civic"]) == 0
    assert "Registered POX4G21" in capsys.readouterr().out

    assert admin.main(["--db", temp_db, "list"]) == 0
    out = capsys.readouterr().out
    assert "POX4G21" in out
    assert "Carlos - Civic" in out


def test_add_rejects_invalid_code(admin, temp_db, capsys):
    assert admin.main(["--db", temp_db, "add", "AB12", "Nobody"]) == 1
    assert "plate grammar" in capsys.readouterr().out


def test_add_force_skips_grammar(admin, temp_db):
    assert admin.main(["--db", temp_db, "add", "AB12", "Nobody", "--force"]) == 0


def test_deactivate(admin, temp_db, capsys):
    admin.main(["--db", temp_db, "add", "POX4G21", "Carlos"])
    capsys.readouterr()

    assert admin.main(["--db", temp_db, "deactivate", "POX4G21"]) == 0
    assert admin.main(["--db", temp_db, "deactivate", "POX4G21"]) == 1

    admin.main(["--db", temp_db, "list"])
    assert "(no vehicles)" in capsys.readouterr().out

    admin.main(["--db", temp_db, "list", "--all"])
    assert "POX4G21" in capsys.readouterr().out


def test_history_empty(admin, temp_db, capsys):
    assert admin.main(["--db", temp_db, "history"]) == 0
    assert "(no access log entries)" in capsys.readouterr().out
