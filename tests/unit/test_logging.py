"""Unit tests for loguru sink configuration."""

from __future__ import annotations

from loguru import logger

from livedetect.pipeline.logging import (
    attach_log_buffer,
    configure_logging,
    create_log_buffer,
)


def test_configure_logging_writes_file(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("LIVEDETECT_LOG_LEVEL", raising=False)
    configure_logging("DEBUG", str(tmp_path), json_logs=True)
    try:
        logger.debug("camera opened")
    finally:
        logger.remove()

    log_files = list(tmp_path.glob("livedetect_*.log"))
    json_files = list(tmp_path.glob("livedetect_*.jsonl"))
    assert len(log_files) == 1
    assert "camera opened" in log_files[0].read_text(encoding="utf-8")
    assert len(json_files) == 1


def test_env_level_overrides_argument(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("LIVEDETECT_LOG_LEVEL", "error")
    configure_logging("DEBUG", str(tmp_path))
    try:
        logger.warning("ignored")
        logger.error("kept")
    finally:
        logger.remove()

    text = next(tmp_path.glob("livedetect_*.log")).read_text(encoding="utf-8")
    assert "kept" in text
    assert "ignored" not in text


def test_log_buffer_keeps_recent_lines() -> None:
    buffer = create_log_buffer(max_lines=2)
    handler_id = attach_log_buffer(buffer, level="INFO")
    try:
        logger.debug("too quiet")
        for index in range(3):
            logger.info("line {}", index)
    finally:
        logger.remove(handler_id)

    assert len(buffer) == 2
    assert buffer[0].endswith("line 1")
    assert buffer[1].endswith("line 2")
