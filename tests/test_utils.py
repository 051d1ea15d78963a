"""
streamgen :: Test Utilities

Logging formatters, session logger, device selection.

INL - 2025
"""

import json
import logging

import torch
import pytest

from streamgen.core.device import select_device, cpu, gpu
from streamgen.core.logging import JSONFormatter, HumanFormatter, SessionLogger, setup_logging


def make_record(msg, **attrs):
    record = logging.LogRecord("streamgen.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in attrs.items():
        setattr(record, k, v)
    return record


class TestFormatters:
    def test_json(self):
        record = make_record("hello", session_id=3, extra_data={"tokens": 5})
        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["session_id"] == 3
        assert entry["tokens"] == 5

    def test_human(self):
        record = make_record("hello", session_id=3, extra_data={"tokens": 5})
        line = HumanFormatter().format(record)
        assert "hello" in line
        assert "tokens=5" in line
        assert "[session=3]" in line

    def test_setup_logging(self, tmp_path):
        log_file = tmp_path / "streamgen.log"
        logger = setup_logging(level="DEBUG", log_file=str(log_file))
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            logger.debug("to file")
            for h in logger.handlers:
                h.flush()
            assert json.loads(log_file.read_text().splitlines()[-1])["message"] == "to file"
        finally:
            for h in logger.handlers:
                h.close()
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)


class TestSessionLogger:
    def test_fields_attached(self, caplog):
        log = SessionLogger(7, logging.getLogger("streamgen.test"))
        with caplog.at_level(logging.DEBUG, logger="streamgen"):
            log.debug("step", token=42)
        record = caplog.records[-1]
        assert record.session_id == 7
        assert record.extra_data == {"token": 42}

    def test_clock(self):
        log = SessionLogger(0)
        log.restart_clock()
        assert log.elapsed_ms() >= 0


class TestDevice:
    def test_force_cpu(self):
        assert select_device(cpu=True) == torch.device("cpu")
        assert cpu() == torch.device("cpu")

    def test_gpu_falls_back(self, monkeypatch):
        monkeypatch.setattr(torch.cuda, "is_available", lambda: False)
        monkeypatch.setattr(torch.backends.mps, "is_available", lambda: False)
        assert gpu() == torch.device("cpu")

    def test_cuda_index(self, monkeypatch):
        monkeypatch.setattr(torch.cuda, "is_available", lambda: True)
        assert select_device(index=1) == torch.device("cuda", 1)
