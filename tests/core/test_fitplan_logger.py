import json
import sys

import pytest
from loguru import logger

from fitplan.core.logger import setup_logger


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_file_sink_writes_structured_records(tmp_path):
    log_file = tmp_path / "logs" / "fitplan.log"
    setup_logger(level="INFO", log_file=str(log_file))

    logger.bind(job_id="job-1", step=2).info("Advancing generation job")
    logger.debug("filtered out")
    logger.remove()

    records = [json.loads(line)["record"] for line in log_file.read_text(encoding="utf-8").splitlines()]
    messages = [record["message"] for record in records]
    assert "Advancing generation job" in messages
    assert "filtered out" not in messages
    advancing = next(record for record in records if record["message"] == "Advancing generation job")
    assert advancing["extra"] == {"job_id": "job-1", "step": 2}


def test_console_only_by_default(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    setup_logger(level="WARNING")
    logger.warning("console only")

    assert list(tmp_path.iterdir()) == []
