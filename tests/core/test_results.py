"""
Unit tests for OperationResult.
"""
import pytest

from apposaur.core.exceptions import RequestError
from apposaur.core.results import OperationResult, Outcome


class TestOperationResult:
    """Tests for the ok / recoverable / fatal variants"""

    def test_ok_unwraps_value(self):
        result = OperationResult.ok("tx_1")
        assert result.is_ok
        assert result.outcome is Outcome.OK
        assert result.unwrap() == "tx_1"

    def test_recoverable_unwraps_to_none(self):
        """Recoverable failures never reach the caller as exceptions"""
        error = RequestError("down", endpoint="/referral/purchase")
        result = OperationResult.recoverable(error, "report_failed")
        assert not result.is_ok
        assert not result.is_fatal
        assert result.unwrap() is None
        assert result.error is error

    def test_fatal_unwrap_raises(self):
        error = RequestError("down", endpoint="/referral/rewards/sign", status=500)
        result = OperationResult.fatal(error)
        assert result.is_fatal
        with pytest.raises(RequestError):
            result.unwrap()
