import logging

from logs import ROOT_LOGGER, get_logger, setup_logging


def test_get_logger_is_namespaced() -> None:
    assert get_logger("descent").name == f"{ROOT_LOGGER}.descent"
    assert get_logger(ROOT_LOGGER).name == ROOT_LOGGER
    assert get_logger(f"{ROOT_LOGGER}.app").name == f"{ROOT_LOGGER}.app"


def test_setup_logging_writes_file(tmp_path) -> None:
    path = tmp_path / "stepviz.log"
    logger = setup_logging(level="debug", log_file=str(path))
    try:
        assert logger.level == logging.DEBUG
        get_logger("descent").debug("hello from the engine")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from the engine" in path.read_text()
    finally:
        setup_logging()


def test_setup_logging_is_idempotent() -> None:
    setup_logging(level="INFO", console=True)
    logger = setup_logging(level="INFO", console=True)
    assert len(logger.handlers) == 1
    setup_logging()
    assert logger.level == logging.WARNING
