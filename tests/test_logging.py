# tests/test_logging.py

import json

import pytest

from photosweep.utils.logging_config import PerformanceLogger, setup_logging

@pytest.fixture
def logger(tmp_path):
    logger = setup_logging("DEBUG", str(tmp_path), structured=True, name="photosweep_test")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

def test_structured_log_lines(logger, tmp_path):
    logger.info("grouping done")
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / "photosweep_test_structured.json").read_text().splitlines()[0]
    record = json.loads(line)
    assert record['message'] == "grouping done"
    assert record['level'] == "INFO"
    assert (tmp_path / "photosweep_test.log").exists()

def test_setup_is_repeatable(tmp_path):
    first = setup_logging("INFO", str(tmp_path), name="photosweep_repeat")
    second = setup_logging("INFO", str(tmp_path), name="photosweep_repeat")

    assert first is second
    assert len(second.handlers) == 2
    assert second.propagate is False
    for handler in list(second.handlers):
        second.removeHandler(handler)
        handler.close()

def test_performance_statistics(tmp_path):
    metrics = PerformanceLogger()
    metrics.log_metric('ingest_batch', 1.0, files=3)
    metrics.log_metric('ingest_batch', 3.0, files=5)
    metrics.log_metric('other', 10.0)

    stats = metrics.get_statistics('ingest_batch')
    assert stats['count'] == 2
    assert stats['mean'] == pytest.approx(2.0)
    assert metrics.get_statistics('missing') == {}

    output = tmp_path / "metrics.json"
    metrics.save_metrics(str(output))
    assert len(json.loads(output.read_text())) == 3
