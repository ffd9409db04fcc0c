"""Tests for coded errors and the rounding policy."""

import math

import pytest

from libs.political_backtest.errors import (
    EventStudyError,
    EventStudyErrorCode,
    InvalidDateError,
    InvalidWindowError,
    MissingPriceError,
    MissingRequiredFieldError,
    PriceSeriesError,
    SessionAlignmentError,
    infer_error_code,
)
from libs.political_backtest.numeric import HIT_RATE_DIGITS, round_half_away


class TestCodedErrors:
    def test_default_codes(self) -> None:
        assert InvalidDateError("report_date", "x").code == "INVALID_DATE"
        assert MissingRequiredFieldError("actor").code == "MISSING_REQUIRED_FIELD"
        assert MissingPriceError("SPY", "2025-01-03").code == "PRICE_SERIES_ERROR"

    def test_to_dict(self) -> None:
        error = InvalidDateError("transaction_date", "soon", {"row_index": 2})

        assert error.to_dict() == {
            "code": "INVALID_DATE",
            "message": "Invalid date in field transaction_date: soon",
            "details": {"row_index": 2},
        }

    def test_event_study_error_serializes_enum_code(self) -> None:
        error = EventStudyError("no events", "EMPTY_EVENT_SET")

        assert error.code is EventStudyErrorCode.EMPTY_EVENT_SET
        assert error.to_dict() == {"code": "EMPTY_EVENT_SET", "message": "no events", "details": None}

    def test_unknown_event_study_code_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            EventStudyError("bad", "NOT_A_CODE")


class TestWrap:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (MissingRequiredFieldError("report_date"), EventStudyErrorCode.MISSING_REQUIRED_ANCHOR_DATE),
            (InvalidDateError("report_date", "x"), EventStudyErrorCode.INVALID_EVENT_DATE),
            (MissingPriceError("SPY", "2025-01-03"), EventStudyErrorCode.MISSING_PRICE_SERIES),
            (PriceSeriesError("empty"), EventStudyErrorCode.INVALID_PRICE_SERIES),
            (SessionAlignmentError("late"), EventStudyErrorCode.ANCHOR_OUT_OF_RANGE),
            (InvalidWindowError("zero"), EventStudyErrorCode.WINDOW_OUT_OF_RANGE),
        ],
    )
    def test_inferred_codes(self, error, expected) -> None:
        assert infer_error_code(error) is expected
        assert EventStudyError.wrap(error).code is expected

    def test_wrap_keeps_message_and_details(self) -> None:
        cause = SessionAlignmentError("Session offset exceeds range", details={"offset": 20})

        wrapped = EventStudyError.wrap(cause, EventStudyErrorCode.WINDOW_OUT_OF_RANGE)

        assert wrapped.message == "Session offset exceeds range"
        assert wrapped.code is EventStudyErrorCode.WINDOW_OUT_OF_RANGE
        assert wrapped.details == {
            "cause": "SessionAlignmentError",
            "cause_code": "SESSION_ALIGNMENT_ERROR",
            "offset": 20,
        }

    def test_wrap_returns_event_study_errors_unchanged(self) -> None:
        original = EventStudyError("no events", EventStudyErrorCode.EMPTY_EVENT_SET)

        assert EventStudyError.wrap(original, EventStudyErrorCode.WINDOW_OUT_OF_RANGE) is original

    def test_wrap_foreign_exception(self) -> None:
        wrapped = EventStudyError.wrap(KeyError("SPY"), EventStudyErrorCode.MISSING_PRICE_SERIES)

        assert wrapped.details == {"cause": "KeyError"}
        assert wrapped.message == "'SPY'"


class TestRoundHalfAway:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.0000025, 0.000003),
            (-0.0000025, -0.000003),
            (10.000000000000009, 10.0),
            (-9.999999999999998, -10.0),
            (8.91089108910891, 8.910891),
            (1.2345675, 1.234568),
        ],
    )
    def test_percent_digits(self, value: float, expected: float) -> None:
        assert round_half_away(value) == expected

    def test_hit_rate_digits(self) -> None:
        assert round_half_away(100 / 3, HIT_RATE_DIGITS) == 33.3333
        assert round_half_away(200 / 3, HIT_RATE_DIGITS) == 66.6667

    def test_negative_zero_is_normalized(self) -> None:
        result = round_half_away(-0.0000001)

        assert result == 0.0
        assert math.copysign(1.0, result) == 1.0

    def test_non_finite_passes_through(self) -> None:
        assert math.isnan(round_half_away(math.nan))
        assert round_half_away(math.inf) == math.inf
