"""Tests for the entry point's logging setup."""

import importlib
import logging
import os


def test_configure_logging_writes_app_log(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "boot"))
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("ENV", "dev")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.delenv("REDIS_URL", raising=False)
    root = logging.getLogger()
    handlers_before = list(root.handlers)
    level_before = root.level
    try:
        main = importlib.import_module("main")
        log_dir = str(tmp_path / "logs")

        path = main.configure_logging(log_dir, "DEBUG")
        logging.getLogger("railtrans.boot").info("startup line")
        for handler in root.handlers:
            handler.flush()

        assert path == os.path.join(log_dir, "app.log")
        with open(path, encoding="utf-8") as fh:
            assert "startup line" in fh.read()
    finally:
        for handler in list(root.handlers):
            if handler not in handlers_before:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level_before)
