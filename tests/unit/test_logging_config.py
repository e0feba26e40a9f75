"""
Unit tests for omnitrack/logging_config.py.

configure_logging: idempotency, dir creation, level, handler type.
log_call: entry/exit/failure logging for plain and coroutine functions.
"""

import asyncio
import logging
import logging.handlers
import os
from unittest.mock import MagicMock, patch

import pytest

from omnitrack.logging_config import configure_logging, log_call


def _clear_omnitrack_logger():
    logger = logging.getLogger("omnitrack")
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)


def _log_paths(log_dir):
    return (
        patch("omnitrack.logging_config._LOG_DIR", log_dir),
        patch("omnitrack.logging_config._LOG_FILE", log_dir / "omnitrack.log"),
    )


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------

class TestConfigureLogging:

    def setup_method(self):
        _clear_omnitrack_logger()

    def teardown_method(self):
        _clear_omnitrack_logger()

    def test_returns_named_logger(self, tmp_path):
        dir_patch, file_patch = _log_paths(tmp_path)
        with dir_patch, file_patch:
            result = configure_logging()
        assert result.name == "omnitrack"

    def test_creates_log_dir_if_missing(self, tmp_path):
        log_dir = tmp_path / "logs"
        dir_patch, file_patch = _log_paths(log_dir)
        with dir_patch, file_patch:
            configure_logging()
        assert log_dir.exists()

    def test_adds_single_rotating_handler_when_called_repeatedly(self, tmp_path):
        dir_patch, file_patch = _log_paths(tmp_path)
        with dir_patch, file_patch:
            configure_logging()
            configure_logging()
        handlers = logging.getLogger("omnitrack").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)

    def test_default_level_is_info(self, tmp_path):
        env = {k: v for k, v in os.environ.items() if k != "LOG_LEVEL"}
        dir_patch, file_patch = _log_paths(tmp_path)
        with patch.dict(os.environ, env, clear=True), dir_patch, file_patch:
            configure_logging()
        assert logging.getLogger("omnitrack").level == logging.INFO

    def test_respects_log_level(self, tmp_path):
        dir_patch, file_patch = _log_paths(tmp_path)
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}), dir_patch, file_patch:
            configure_logging()
        assert logging.getLogger("omnitrack").level == logging.DEBUG

    def test_invalid_log_level_falls_back_to_info(self, tmp_path):
        dir_patch, file_patch = _log_paths(tmp_path)
        with patch.dict(os.environ, {"LOG_LEVEL": "LOUD"}), dir_patch, file_patch:
            configure_logging()
        assert logging.getLogger("omnitrack").level == logging.INFO


# ---------------------------------------------------------------------------
# log_call
# ---------------------------------------------------------------------------

class TestLogCall:

    def _run_logged(self, func, *args, **kwargs):
        mock_logger = MagicMock()
        with patch("omnitrack.logging_config.logging") as mock_logging:
            mock_logging.getLogger.return_value = mock_logger
            result = func(*args, **kwargs)
        return mock_logger, result

    def test_passes_return_value_through(self):
        @log_call
        def add(a, b):
            return a + b

        _, result = self._run_logged(add, 2, 3)
        assert result == 5

    def test_preserves_function_name(self):
        @log_call
        def refresh():
            pass

        assert refresh.__name__ == "refresh"

    def test_entry_log_lists_arguments(self):
        @log_call
        def func(x, y=10):
            return x + y

        mock_logger, _ = self._run_logged(func, 1, y=99)
        msg = mock_logger.debug.call_args[0][0]
        assert msg.startswith("CALL func")
        assert "1" in msg and "y=99" in msg

    def test_logs_ok_on_success(self):
        @log_call
        def noop():
            pass

        mock_logger, _ = self._run_logged(noop)
        msg = mock_logger.info.call_args[0][0]
        assert "OK" in msg and "noop" in msg and "ms" in msg

    def test_logs_fail_and_reraises(self):
        @log_call
        def broken():
            raise ValueError("bad amount")

        mock_logger = MagicMock()
        with patch("omnitrack.logging_config.logging") as mock_logging:
            mock_logging.getLogger.return_value = mock_logger
            with pytest.raises(ValueError, match="bad amount"):
                broken()

        msg = mock_logger.error.call_args[0][0]
        assert "FAIL broken" in msg
        assert "ValueError: bad amount" in msg

    def test_async_function_stays_a_coroutine_function(self):
        @log_call
        async def fetch():
            return 1

        assert asyncio.iscoroutinefunction(fetch)

    def test_async_ok_logged_after_await(self):
        @log_call
        async def fetch(account_id):
            await asyncio.sleep(0)
            return account_id

        mock_logger = MagicMock()
        with patch("omnitrack.logging_config.logging") as mock_logging:
            mock_logging.getLogger.return_value = mock_logger
            result = asyncio.run(fetch("acct-1"))

        assert result == "acct-1"
        assert "OK   fetch" in mock_logger.info.call_args[0][0]

    def test_async_failure_logged_and_reraised(self):
        @log_call
        async def fetch():
            raise RuntimeError("connection lost")

        mock_logger = MagicMock()
        with patch("omnitrack.logging_config.logging") as mock_logging:
            mock_logging.getLogger.return_value = mock_logger
            with pytest.raises(RuntimeError):
                asyncio.run(fetch())

        assert "FAIL fetch | RuntimeError: connection lost" in mock_logger.error.call_args[0][0]
