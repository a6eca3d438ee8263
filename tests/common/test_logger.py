# tests/common/test_logger.py
"""
Unit тесты для модуля логирования (src/common/logger.py).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest

from src.common import logger as logger_module
from src.common.constants import TypeMsg
from src.common.logger import (
    ColoredFormatter,
    DateBasedRotatingFileHandler,
    JsonFormatter,
    _get_caller_info,
    _loggers,
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
    setup_logging,
)


def make_record(level: int = logging.INFO, msg: str = "Test message") -> logging.LogRecord:
    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    record.module = "test_module"
    record.funcName = "test_function"
    return record


class TestJsonFormatter:
    """Тесты для JsonFormatter."""

    def test_format_basic_record(self) -> None:
        """Тест форматирования базовой записи."""
        data = json.loads(JsonFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["module"] == "test_module"
        assert data["function"] == "test_function"
        assert data["line"] == 10
        assert data["timestamp"].endswith("Z")

    def test_format_with_extra_data(self) -> None:
        """Тест форматирования записи с дополнительными данными."""
        record = make_record(logging.WARNING)
        record.extra_data = {"ride_id": "r1", "problems": ["x"]}

        data = json.loads(JsonFormatter().format(record))

        assert data["extra"] == {"ride_id": "r1", "problems": ["x"]}

    def test_format_with_exception(self) -> None:
        """Тест форматирования записи с исключением."""
        try:
            raise ValueError("Test exception")
        except ValueError:
            import sys
            record = make_record(logging.ERROR)
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "ValueError: Test exception" in data["exception"]

    def test_non_ascii_message(self) -> None:
        result = JsonFormatter().format(make_record(msg="Поездка создана"))
        assert "Поездка создана" in result


class TestColoredFormatter:
    """Тесты для ColoredFormatter."""

    def test_level_color(self) -> None:
        result = ColoredFormatter().format(make_record(logging.ERROR, "Broken"))

        assert ColoredFormatter.COLORS["ERROR"] in result
        assert "[ERROR]" in result
        assert "Broken" in result

    def test_caller_info(self) -> None:
        """Сведения о вызывающем коде попадают в строку."""
        record = make_record()
        record.extra_data = {
            "caller_function": "my_function",
            "caller_module": "my_module",
            "caller_file": "my_file.py",
            "caller_line": 42,
        }

        result = ColoredFormatter().format(record)

        assert "my_module.my_function()" in result
        assert "my_file.py:42" in result


class TestDateBasedRotatingFileHandler:
    """Тесты для DateBasedRotatingFileHandler."""

    def test_rollover_archives_file(self, tmp_path: Path) -> None:
        """При превышении размера файл переименовывается с датой."""
        handler = DateBasedRotatingFileHandler(str(tmp_path), max_bytes=10, logger_name="app")
        handler.setFormatter(logging.Formatter("%(message)s"))
        try:
            handler.emit(make_record(msg="first record is long enough"))
            handler.emit(make_record(msg="second"))
        finally:
            handler.close()

        archives = [p for p in tmp_path.iterdir() if p.name.startswith("app_")]
        assert len(archives) == 1
        assert (tmp_path / "app.log").read_text(encoding="utf-8").strip() == "second"

    def test_zero_max_bytes_never_rolls(self, tmp_path: Path) -> None:
        handler = DateBasedRotatingFileHandler(str(tmp_path), max_bytes=0)
        try:
            assert handler.shouldRollover(make_record()) is False
        finally:
            handler.close()


class TestGetLogger:
    """Тесты для get_logger."""

    def setup_method(self) -> None:
        """Очистка кэша логгеров перед каждым тестом."""
        for name in ("test_logger", "test_with_settings", "test_no_settings"):
            _loggers.pop(name, None)
            logging.getLogger(name).handlers.clear()

    def test_get_logger_creates_new_logger(self) -> None:
        """Тест создания нового логгера."""
        logger = get_logger("test_logger")

        assert logger.name == "test_logger"
        assert len(logger.handlers) >= 1
        assert logger.propagate is False

    def test_get_logger_returns_cached_logger(self) -> None:
        """Тест возврата кэшированного логгера."""
        assert get_logger("test_logger") is get_logger("test_logger")

    @patch("src.config.settings")
    def test_get_logger_uses_settings(self, mock_settings: Mock) -> None:
        """Тест использования настроек из конфига."""
        mock_settings.logging.LOG_LEVEL = "WARNING"
        mock_settings.logging.LOG_FORMAT = "json"
        mock_settings.logging.LOG_TO_FILE = False
        mock_settings.logging.LOG_FILE_PATH = "logs/test.log"
        mock_settings.logging.LOG_MAX_BYTES = 10485760

        logger = get_logger("test_with_settings")

        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_get_logger_handles_missing_settings(self) -> None:
        """Тест работы при отсутствии настроек."""
        # settings импортируется внутри функции, поэтому патчим модуль src.config
        with patch.dict("sys.modules", {"src.config": None}):
            logger = get_logger("test_no_settings")

        assert logger.level == logging.DEBUG
        assert isinstance(logger.handlers[0].formatter, ColoredFormatter)


class TestSetupLogging:
    """Тесты для setup_logging."""

    def test_setup_logging_is_idempotent(self) -> None:
        """Повторная инициализация ничего не меняет."""
        with patch.object(logger_module, "_LOGGING_INITIALIZED", False):
            setup_logging()
            assert logger_module.DEFAULT_LOGGER in _loggers
            assert logging.getLogger("redis").level == logging.WARNING

            with patch.object(logger_module, "get_logger") as mock_get_logger:
                setup_logging()
            mock_get_logger.assert_not_called()


class TestGetCallerInfo:
    """Тесты для _get_caller_info."""

    def test_skips_log_helpers(self) -> None:
        """Вызывающим считается код, вызвавший log_*."""
        def log_info() -> dict:
            return _get_caller_info()

        def log_warning() -> dict:
            return log_info()

        def caller_function() -> dict:
            return log_warning()

        info = caller_function()

        assert info["caller_function"] == "caller_function"
        assert info["caller_file"] == "test_logger.py"


class TestLogFunctions:
    """Тесты для асинхронных функций логирования."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("type_msg,method", [
        (TypeMsg.DEBUG, "debug"),
        (TypeMsg.INFO, "info"),
        (TypeMsg.WARNING, "warning"),
        (TypeMsg.ERROR, "error"),
        (TypeMsg.CRITICAL, "critical"),
    ])
    async def test_log_info_levels(self, type_msg: TypeMsg, method: str) -> None:
        """Уровень записи определяется type_msg."""
        with patch("src.common.logger.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            await log_info("Message", type_msg=type_msg)

        getattr(mock_logger, method).assert_called_once()

    @pytest.mark.asyncio
    async def test_log_info_with_extra(self) -> None:
        """Дополнительные данные и сведения о вызывающем коде в extra_data."""
        with patch("src.common.logger.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            await log_info("Test message", extra={"ride_id": "r1"}, logger_name="custom_logger")

        mock_get_logger.assert_called_once_with("custom_logger")
        extra_data = mock_logger.info.call_args.kwargs["extra"]["extra_data"]
        assert extra_data["ride_id"] == "r1"
        assert extra_data["caller_function"] == "test_log_info_with_extra"

    @pytest.mark.asyncio
    async def test_log_debug_and_warning(self) -> None:
        with patch("src.common.logger.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            await log_debug("Debug message")
            await log_warning("Warning message")

        mock_logger.debug.assert_called_once()
        mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_error_with_exc_info(self) -> None:
        """Тест логирования ошибки с трейсбеком."""
        with patch("src.common.logger.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            await log_error("Error message", exc_info=True)

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs["exc_info"] is True
