import json
import logging

import pytest

import app


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_parse_args_defaults(monkeypatch):
    monkeypatch.delenv("PRINTAGENT_SYNC", raising=False)
    args = app.parse_args([])
    assert args.sync is False
    assert args.status_port is None
    args = app.parse_args(["--sync", "--status-port", "8099", "--subnet", "10.0.0"])
    assert (args.sync, args.status_port, args.subnet) == (True, 8099, "10.0.0")


def test_missing_api_key_exits_nonzero(tmp_path, monkeypatch):
    monkeypatch.setenv("PRINTAGENT_CONFIG_PATH", str(tmp_path / "config.json"))
    monkeypatch.delenv("PRINTAGENT_API_KEY", raising=False)
    assert app.main([]) == 1


def test_unreadable_registry_exits_nonzero(tmp_path, monkeypatch):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"apiKey": "k"}))
    printers = tmp_path / "printers.json"
    printers.write_text("{not json")
    monkeypatch.setenv("PRINTAGENT_WORK_DIR", str(tmp_path / "work"))
    assert app.main(["--config", str(cfg), "--printers", str(printers)]) == 1
