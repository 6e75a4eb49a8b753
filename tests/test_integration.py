"""Live tests against the filing feed.  Run with: pytest -m integration"""

import pytest

from alphavault.feed_client import get_feed_client
from alphavault.ma_analytics import MAAnalyticsEngine


@pytest.mark.integration
def test_resolve_company():
    company = get_feed_client().resolve_company("AAPL")
    assert company.cik.lstrip("0") == "320193"
    assert "Apple" in (company.company_name or "")


@pytest.mark.integration
def test_ma_probability_live():
    result = MAAnalyticsEngine().calculate_ma_probability("MSFT", lookback_days=30)
    assert 0 <= result.probability_score <= 100
    assert result.cik.lstrip("0") == "789019"


@pytest.mark.integration
def test_serial_acquirers_live():
    result = MAAnalyticsEngine().get_serial_acquirers("Technology", years=1, max_results=100)
    assert result.total_acquisitions >= len(result.serial_acquirers)
    counts = [a.count for a in result.serial_acquirers]
    assert counts == sorted(counts, reverse=True)


@pytest.mark.integration
def test_recent_s4_bulk_live():
    feed = get_feed_client().get_s4_bulk(days=30, max_results=10)
    assert all(f.cik for f in feed.filings)
