"""Tests for configuration loading, identifiers and logging context."""

import logging
import re
import threading

import pytest

from caseintake.utils.config import Config
from caseintake.utils.errors import ConfigurationError
from caseintake.utils.identifiers import generate_case_id, generate_image_id
from caseintake.utils.logging import (
    ContextFilter,
    _context_filter,
    clear_context,
    reset_context,
    set_context,
    with_context,
)


def test_case_id_format():
    case_id = generate_case_id()
    assert re.fullmatch(r"REG-[0-9A-Z]{9}", case_id)


def test_case_id_prefix():
    assert generate_case_id(prefix="CASE").startswith("CASE-")


def test_identifiers_vary():
    assert len({generate_case_id() for _ in range(50)}) == 50
    assert len({generate_image_id() for _ in range(50)}) == 50


def test_missing_config_file_uses_defaults(tmp_path):
    config = Config.load(str(tmp_path / "absent.yaml"))
    assert config.compression.max_dimension == 800
    assert config.compression.quality == 0.8
    assert config.notification.provider == "log"


def test_load_yaml_with_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(
        "compression:\n"
        "  max_dimension: 1024\n"
        "  quality: 0.7\n"
        "notification:\n"
        "  provider: resend\n"
        "  recipients: [ops@example.com]\n"
        "server:\n"
        "  case_id_prefix: CASE\n"
    )
    monkeypatch.setenv("IMAGE_QUALITY", "0.6")
    monkeypatch.setenv("NOTIFY_RECIPIENTS", "a@example.com, b@example.com")
    monkeypatch.setenv("RESEND_API_KEY", "re_test")

    config = Config.load(str(path))

    assert config.compression.max_dimension == 1024
    assert config.compression.quality == 0.6
    assert config.notification.provider == "resend"
    assert config.notification.recipients == ["a@example.com", "b@example.com"]
    assert config.notification.resend_api_key == "re_test"
    assert config.server.case_id_prefix == "CASE"


def test_invalid_quality_is_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("IMAGE_QUALITY", "1.5")
    with pytest.raises(ConfigurationError):
        Config.load(str(tmp_path / "absent.yaml"))


def test_context_filter_adds_case_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    ContextFilter().filter(record)
    assert record.case_id == "-"


def test_with_context_restores_previous_context():
    clear_context()
    set_context(case_id="REG-OUTER")

    @with_context(case_id="REG-INNER")
    def inner():
        return dict(_context_filter.context)

    assert inner()["case_id"] == "REG-INNER"
    assert _context_filter.context["case_id"] == "REG-OUTER"
    clear_context()


def test_log_context_is_isolated_between_threads(context_records):
    log = logging.getLogger("caseintake.context_check")
    barrier = threading.Barrier(2, timeout=5)

    def handle(case_id, finishes_first):
        set_context(case_id=case_id)
        barrier.wait()
        if finishes_first:
            clear_context()
        barrier.wait()
        log.info(f"handled {case_id}")

    threads = [
        threading.Thread(target=handle, args=("REG-A", True)),
        threading.Thread(target=handle, args=("REG-B", False)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    tagged = {record.getMessage(): record.case_id for record in context_records.records}
    assert tagged == {"handled REG-A": "-", "handled REG-B": "REG-B"}


def test_set_context_token_restores_previous_fields():
    clear_context()
    outer = set_context(case_id="REG-OUTER")
    inner = set_context(case_id="REG-INNER")

    reset_context(inner)
    assert _context_filter.context == {"case_id": "REG-OUTER"}
    reset_context(outer)
    assert _context_filter.context == {}
