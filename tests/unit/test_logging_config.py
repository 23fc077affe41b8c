"""Tests for logging configuration."""

from loguru import logger

from scenecast.core.logging_config import get_logger, setup_logging


def test_get_logger_binds_stage():
    """Test the stage defaults to the module name and can be overridden."""
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    try:
        get_logger("scenecast.services.video_assembler").info("assembling")
        get_logger("scenecast.services.segment_builder", stage="segment 2", scene_index=2).info("rendering")
    finally:
        logger.remove(sink_id)

    assert records[0]["extra"]["stage"] == "video_assembler"
    assert records[1]["extra"]["stage"] == "segment 2"
    assert records[1]["extra"]["scene_index"] == 2


def test_setup_logging_writes_file_with_stage(tmp_path):
    """Test the file sink is created and records the stage column."""
    log_file = tmp_path / "logs" / "scenecast.log"
    setup_logging("DEBUG", str(log_file))
    try:
        get_logger("scenecast.services.video_assembler", stage="concatenation").info("joined 3 segments")
    finally:
        setup_logging()

    text = log_file.read_text()
    assert "| concatenation |" in text
    assert "joined 3 segments" in text
