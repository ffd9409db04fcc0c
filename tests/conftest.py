"""
Root conftest for tests.

Provides small builders for events and price bars shared by the
political-backtest tests, and resets process-wide state between tests.
"""

from collections.abc import Callable, Iterator, Mapping

import pytest

from config.settings import get_settings
from libs.common.logging.context import clear_run_id
from libs.political_backtest.types import PoliticalEvent, PriceBar, TransactionSide


@pytest.fixture(autouse=True)
def reset_process_state() -> Iterator[None]:
    """Clear the run ID context and the cached settings around every test."""
    clear_run_id()
    get_settings.cache_clear()
    yield
    clear_run_id()
    get_settings.cache_clear()


@pytest.fixture
def make_bars() -> Callable[[str, Mapping[str, float]], list[PriceBar]]:
    """Build a symbol's bars from a ``{date: close}`` mapping."""

    def _make(symbol: str, closes: Mapping[str, float]) -> list[PriceBar]:
        return [PriceBar(symbol=symbol, date=day, adjusted_close=close) for day, close in closes.items()]

    return _make


@pytest.fixture
def make_event() -> Callable[..., PoliticalEvent]:
    """Build a PoliticalEvent with sensible defaults."""

    def _make(
        event_id: str = "ticker_congress_trading:TEST:abc",
        ticker: str = "TEST",
        transaction_date: str | None = "2025-01-03",
        report_date: str | None = "2025-01-06",
        side: TransactionSide = TransactionSide.BUY,
        actor: str | None = "Jane Doe",
    ) -> PoliticalEvent:
        return PoliticalEvent(
            event_id=event_id,
            ticker=ticker,
            source_dataset_id="ticker_congress_trading",
            actor=actor,
            side=side,
            transaction_date=transaction_date,
            report_date=report_date,
        )

    return _make
