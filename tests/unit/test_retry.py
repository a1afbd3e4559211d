"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Unit tests for journal I/O retry.
"""

from unittest.mock import patch

import pytest

from umbra.core.retry import retry_on_os_error


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("umbra.core.retry.time.sleep") as mock_sleep:
        yield mock_sleep


class TestRetryOnOSError:
    """Tests for retry_on_os_error decorator."""

    def test_successful_operation_no_retry(self, no_sleep):
        call_count = 0

        @retry_on_os_error(max_retries=3)
        def successful_operation():
            nonlocal call_count
            call_count += 1
            return "success"

        assert successful_operation() == "success"
        assert call_count == 1
        assert not no_sleep.called

    def test_transient_failure_with_retry(self):
        call_count = 0

        @retry_on_os_error(max_retries=3)
        def failing_then_succeeding():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise OSError("Transient failure")
            return "success"

        assert failing_then_succeeding() == "success"
        assert call_count == 3  # Failed twice, succeeded on third attempt

    def test_permanent_failure_after_max_retries(self):
        call_count = 0

        @retry_on_os_error(max_retries=3)
        def always_failing():
            nonlocal call_count
            call_count += 1
            raise OSError("Permanent failure")

        with pytest.raises(OSError, match="Permanent failure"):
            always_failing()

        assert call_count == 4  # Initial attempt + 3 retries

    def test_zero_retries(self):
        call_count = 0

        @retry_on_os_error(max_retries=0)
        def always_failing():
            nonlocal call_count
            call_count += 1
            raise OSError("disk full")

        with pytest.raises(OSError):
            always_failing()
        assert call_count == 1

    def test_other_exceptions_not_retried(self):
        call_count = 0

        @retry_on_os_error(max_retries=3)
        def broken():
            nonlocal call_count
            call_count += 1
            raise ValueError("Non-transient error")

        with pytest.raises(ValueError, match="Non-transient error"):
            broken()

        assert call_count == 1

    def test_exponential_backoff(self, no_sleep):
        @retry_on_os_error(max_retries=3, base_delay=0.1, backoff_factor=2.0)
        def always_failing():
            raise OSError("disk busy")

        with pytest.raises(OSError):
            always_failing()

        delays = [call.args[0] for call in no_sleep.call_args_list]
        assert delays == pytest.approx([0.1, 0.2, 0.4])

    def test_preserves_function_name(self):
        @retry_on_os_error()
        def append_record():
            pass

        assert append_record.__name__ == "append_record"
