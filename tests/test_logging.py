import json
import logging

from app_config import LoggingConfig
from app_logging import (
    AppLogger,
    CopyContext,
    StructuredFormatter,
    configure_root_logger,
    get_logger,
    set_current_copy,
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.lines = []

    def emit(self, record):
        self.lines.append(self.format(record))


def _attach(name: str, output_format: str) -> _ListHandler:
    handler = _ListHandler()
    handler.setFormatter(StructuredFormatter(output_format))
    target = logging.getLogger(name)
    target.handlers = [handler]
    target.setLevel(logging.DEBUG)
    target.propagate = False
    return handler


def test_json_lines_carry_copy_context() -> None:
    handler = _attach("tests.copy.json", "json")
    set_current_copy(CopyContext(account_id="acct-1", source_wallet="0xabc", request_id="req-1"))

    get_logger("tests.copy.json").info("Placing order")

    record = json.loads(handler.lines[0])
    assert record["message"] == "Placing order"
    assert record["account_id"] == "acct-1"
    assert record["source_wallet"] == "0xabc"
    assert record["request_id"] == "req-1"
    assert record["level"] == "INFO"


def test_text_lines_without_context() -> None:
    handler = _attach("tests.copy.text", "text")

    AppLogger("tests.copy.text").log_warning("Balance changed")

    assert "WARNING - Balance changed" in handler.lines[0]
    assert "account_id" not in handler.lines[0]


def test_configure_root_logger_writes_file(tmp_path) -> None:
    log_file = tmp_path / "logs" / "copy.log"
    configure_root_logger(LoggingConfig(level="info", format="json", file_path=str(log_file)))

    logging.getLogger("tests.copy.file").info("hello")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("apscheduler").level == logging.WARNING
    assert json.loads(log_file.read_text().strip().splitlines()[-1])["message"] == "hello"

    for handler in logging.getLogger().handlers:
        handler.close()
    logging.getLogger().handlers.clear()
