"""Tests for retry utilities."""

import asyncio
import io

import pytest

from docschema.errors import ObjectNotFoundError, StoreBusyError
from docschema.utils.retry import on_backoff, on_giveup, retry_storage


class TestRetryCallbacks:
    """Test retry callback functions."""

    def test_on_backoff_logs_warning(self, log_capture: io.StringIO) -> None:
        """on_backoff should log retry attempts."""

        def dummy_func() -> None:
            pass

        details = {
            "target": dummy_func,
            "tries": 2,
            "wait": 1.5,
            "exception": StoreBusyError("database is locked"),
        }
        on_backoff(details)

        log_output = log_capture.getvalue()
        assert "Retrying" in log_output
        assert "dummy_func" in log_output

    def test_on_giveup_logs_error(self, log_capture: io.StringIO) -> None:
        """on_giveup should log when retries exhausted."""

        def dummy_func() -> None:
            pass

        details = {
            "target": dummy_func,
            "tries": 5,
            "exception": StoreBusyError("database is locked"),
        }
        on_giveup(details)

        log_output = log_capture.getvalue()
        assert "Gave up" in log_output
        assert "ERROR" in log_output


class TestRetryStorage:
    """Test the retry_storage decorator."""

    @pytest.mark.asyncio
    async def test_retries_busy_store(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A busy store is retried until the call succeeds."""
        monkeypatch.setattr(asyncio, "sleep", _no_sleep)
        calls = 0

        @retry_storage
        async def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise StoreBusyError("database is locked")
            return "ok"

        assert await flaky() == "ok"
        assert calls == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_other_storage_errors(self) -> None:
        """Errors other than a busy store propagate immediately."""
        calls = 0

        @retry_storage
        async def missing() -> None:
            nonlocal calls
            calls += 1
            raise ObjectNotFoundError("gone")

        with pytest.raises(ObjectNotFoundError):
            await missing()
        assert calls == 1


async def _no_sleep(_seconds: float) -> None:
    return None
