"""Tests for the M&A analytics engine, run against an in-memory filing source."""

from datetime import date, datetime, timezone

import pytest
from conftest import AS_OF, S4_TEXT, FakeSource, filing

from alphavault import form_s4
from alphavault.errors import UpstreamFetchFailure
from alphavault.ma_analytics import (
    MAAnalyticsEngine,
    analyze_board_activity,
    analyze_leadership_changes,
    analyze_legal_counsel,
    analyze_material_agreements,
    analyze_unusual_8k_activity,
    data_quality,
    deal_stats,
)
from alphavault.models import (
    DealComp,
    DealType,
    FinancialTerms,
    MaterialEvents,
    ParsedS4Record,
    ProbabilityLevel,
    Regulatory,
    RegulatoryApproval,
    RiskLevel,
)

CIK = "0000320193"


def _day(month, day):
    return datetime(2024, month, day, tzinfo=timezone.utc)


def company_filings():
    return [
        filing(cik=CIK, filedDate=_day(5, 10), isLeadershipChange=True),
        filing(cik=CIK, filedDate=_day(5, 20), isLeadershipChange=True,
               summary="Board meeting held; Wachtell retained as counsel"),
        filing(cik=CIK, filedDate=_day(5, 25)),
        filing(cik=CIK, filedDate=_day(4, 20)),
        filing(cik="789019", filedDate=_day(5, 28), isLeadershipChange=True,
               summary="Special committee formed"),
    ]


def material_events(count=2):
    return MaterialEvents(categorized={"materialAgreements": [filing(cik=CIK) for _ in range(count)]})


@pytest.fixture
def engine(reference):
    source = FakeSource(eight_k=company_filings(), events=material_events())
    return MAAnalyticsEngine(source=source, reference=reference, clock=lambda: AS_OF)


@pytest.fixture
def s4_record(reference):
    return form_s4.parse(S4_TEXT, reference=reference)


# --- Signal analysers ---


def test_unusual_activity_ratio():
    assert analyze_unusual_8k_activity(company_filings()[:4], AS_OF) == 100


def test_unusual_activity_without_prior_window():
    recent = [filing(filedDate=_day(5, d)) for d in (10, 12, 14)]
    assert analyze_unusual_8k_activity(recent, AS_OF) == 30
    assert analyze_unusual_8k_activity(recent[:1], AS_OF) == 0
    assert analyze_unusual_8k_activity([], AS_OF) == 0


def test_unusual_activity_boundaries():
    # as_of itself is in the recent window, as_of - 30d is in the prior one
    rows = [filing(filedDate=AS_OF), filing(filedDate=_day(5, 2))]
    assert analyze_unusual_8k_activity(rows, AS_OF) == 0


def test_material_agreement_tiers():
    assert analyze_material_agreements(material_events(3)) == 100
    assert analyze_material_agreements(material_events(2)) == 70
    assert analyze_material_agreements(material_events(1)) == 40
    assert analyze_material_agreements(MaterialEvents()) == 0


def test_material_agreements_snake_case_key():
    events = MaterialEvents(categorized={"material_agreements": [filing()]})
    assert analyze_material_agreements(events) == 40


def test_leadership_tiers():
    rows = [filing(isLeadershipChange=True) for _ in range(3)]
    assert analyze_leadership_changes(rows) == 90
    assert analyze_leadership_changes(rows[:2]) == 60
    assert analyze_leadership_changes(rows[:1]) == 30
    assert analyze_leadership_changes([]) == 0


def test_board_activity():
    rows = [filing(summary="Board meeting scheduled"), filing(summary="special committee review")]
    assert analyze_board_activity(rows) == 80
    assert analyze_board_activity(rows[:1]) == 40
    assert analyze_board_activity([filing(summary="dividend")]) == 0


def test_legal_counsel(reference):
    rows = [filing(summary="Advised by SKADDEN on the transaction")]
    assert analyze_legal_counsel(rows, reference.ma_law_firms) == 70
    assert analyze_legal_counsel([filing(summary="routine")], reference.ma_law_firms) == 0


def test_data_quality():
    assert data_quality({"a": 10, "b": 20, "c": 0}) == RiskLevel.MEDIUM
    assert data_quality({"a": 10, "b": None}) == RiskLevel.MEDIUM
    assert data_quality({"a": 10}) == RiskLevel.HIGH
    assert data_quality({"a": None}) == RiskLevel.LOW


# --- M&A probability ---


def test_ma_probability(engine):
    result = engine.calculate_ma_probability("aapl")
    assert result.ticker == "AAPL"
    assert result.cik == "320193"
    assert result.signals == {
        "unusual_8k_activity": 100,
        "material_agreements": 70,
        "leadership_changes": 60,
        "board_meetings": 40,
        "legal_counsel_changes": 70,
        "insider_freeze": None,
        "institutional_accumulation": None,
    }
    assert result.probability_score == 72
    assert result.risk_level == ProbabilityLevel.VERY_HIGH
    assert result.data_quality == RiskLevel.HIGH
    assert result.errors == []
    assert result.as_of == AS_OF
    assert sum(result.weights.values()) == 100


def test_ma_probability_requests(engine):
    engine.calculate_ma_probability("AAPL", lookback_days=60)
    calls = dict(engine.source.calls)
    assert calls["get_8k_bulk"]["items"] == "1.01,2.01,5.02"
    assert calls["get_8k_bulk"]["days"] == 60
    assert calls["get_s4_feed"]["cik"] == "320193"
    assert calls["get_material_events"]["days"] == 60


def test_ma_probability_partial_failure(reference):
    source = FakeSource(eight_k=company_filings(), fail=("get_material_events",))
    engine = MAAnalyticsEngine(source=source, reference=reference, clock=lambda: AS_OF)
    result = engine.calculate_ma_probability("AAPL")
    assert result.signals["material_agreements"] is None
    assert len(result.errors) == 1
    assert result.errors[0].startswith("material events:")
    assert result.probability_score == 72


def test_ma_probability_all_feeds_down(reference):
    source = FakeSource(fail=("get_8k_bulk", "get_s4_feed", "get_material_events"))
    engine = MAAnalyticsEngine(source=source, reference=reference, clock=lambda: AS_OF)
    result = engine.calculate_ma_probability("AAPL")
    assert result.probability_score == 0
    assert result.risk_level == ProbabilityLevel.LOW
    assert len(result.errors) == 3
    assert all(entry.status == "UNAVAILABLE" for entry in result.breakdown)


def test_ma_probability_unknown_ticker(reference):
    engine = MAAnalyticsEngine(source=FakeSource(fail=("resolve_company",)), reference=reference)
    with pytest.raises(UpstreamFetchFailure):
        engine.calculate_ma_probability("ZZZZ")


# --- Deal-level estimators ---


def test_takeover_premium_small_cap(engine):
    result = engine.calculate_takeover_premium(50.0, "Technology", 500)
    assert result.estimated_premium == 40
    assert result.target_price == pytest.approx(70.0)
    assert result.confidence_level == RiskLevel.LOW
    assert result.ev_sales == 8.5
    assert result.ev_ebitda == 22.0


def test_takeover_premium_confidence(engine):
    assert engine.calculate_takeover_premium(10, "Healthcare", 20_000).confidence_level == RiskLevel.HIGH
    large = engine.calculate_takeover_premium(10, "Healthcare", 80_000)
    assert large.confidence_level == RiskLevel.MEDIUM
    assert large.estimated_premium == 25


def test_takeover_premium_unknown_sector(engine):
    result = engine.calculate_takeover_premium(20, "Aerospace", 3_000)
    assert result.estimated_premium == 25
    assert result.ev_sales == 1.8


def test_regulatory_timeline(engine, s4_record):
    result = engine.predict_regulatory_timeline(s4_record, as_of=datetime(2024, 3, 15, tzinfo=timezone.utc))
    assert result.timelines == {"FTC/DOJ Review": 6, "SEC Review": 3, "Shareholder Vote": 2}
    assert result.total_months == 11
    assert result.complexity == RiskLevel.MEDIUM
    assert result.estimated_close_date == date(2025, 2, 15)


def test_regulatory_timeline_standard_close(engine):
    result = engine.predict_regulatory_timeline(ParsedS4Record())
    assert result.timelines == {"Standard Close": 4}
    assert result.complexity == RiskLevel.LOW
    assert result.estimated_close_date == date(2024, 10, 1)


def test_regulatory_timeline_month_end(engine):
    record = ParsedS4Record(regulatory=Regulatory(
        approvals_required=[RegulatoryApproval(authority="Shareholders")],
    ))
    result = engine.predict_regulatory_timeline(record, as_of=datetime(2023, 12, 31, tzinfo=timezone.utc))
    assert result.estimated_close_date == date(2024, 2, 29)


def test_regulatory_timeline_large_deal(engine):
    record = ParsedS4Record(
        financial_terms=FinancialTerms(deal_value=25_000),
        regulatory=Regulatory(approvals_required=[
            RegulatoryApproval(authority="FTC"), RegulatoryApproval(authority="EC"),
        ]),
    )
    result = engine.predict_regulatory_timeline(record)
    assert result.timelines == {"FTC/DOJ Review": 12, "European Commission": 9}
    assert result.complexity == RiskLevel.HIGH


def test_integration_risk(engine, s4_record):
    result = engine.calculate_integration_risk(s4_record, as_of=datetime(2024, 3, 15, tzinfo=timezone.utc))
    assert result.risks == {
        "cultural_mismatch": None,
        "debt_level": 30,
        "synergy_realization": 70,
        "regulatory_complexity": 60,
        "integration_timeline": 70,
    }
    assert result.overall_risk == 57
    assert result.risk_level == RiskLevel.MEDIUM


def test_integration_risk_without_data(engine):
    result = engine.calculate_integration_risk(ParsedS4Record())
    assert result.risks["synergy_realization"] == 60
    assert result.risks["integration_timeline"] == 50
    assert result.risks["regulatory_complexity"] == 30


def test_break_up_fee(engine, s4_record):
    result = engine.analyze_break_up_fee(s4_record)
    assert result.has_break_up_fee
    assert result.fee_percentage == 3.0
    assert result.assessment == "STANDARD"
    assert result.market_standard == "2-4%"


def test_break_up_fee_bands(engine):
    high = ParsedS4Record(financial_terms=FinancialTerms(deal_value=100, break_up_fee=7))
    low = ParsedS4Record(financial_terms=FinancialTerms(deal_value=1000, break_up_fee=12.5))
    assert engine.analyze_break_up_fee(high).assessment == "HIGH"
    result = engine.analyze_break_up_fee(low)
    assert result.assessment == "LOW"
    assert result.fee_percentage == 1.25


def test_break_up_fee_missing(engine):
    result = engine.analyze_break_up_fee(ParsedS4Record())
    assert not result.has_break_up_fee
    assert result.message == "No break-up fee information available"
    assert result.fee_percentage is None


# --- Market-wide views ---


def test_deal_comps(reference):
    smaller = S4_TEXT.replace("$1.5 billion", "$900 million")
    source = FakeSource(
        s4=[
            filing(cik="1", companyName="Alpha Holdings", accessionNumber="A", filedDate=_day(1, 10)),
            filing(cik="2", companyName="Short Filer", accessionNumber="B", filedDate=_day(2, 1)),
            filing(cik="3", companyName="Missing Co", accessionNumber="C", filedDate=_day(2, 2)),
            filing(cik="4", companyName="Delta Corp", accessionNumber="D", filedDate=_day(3, 1)),
            filing(cik="5", companyName="No Accession"),
        ],
        contents={"A": S4_TEXT, "B": "too short", "D": smaller},
    )
    engine = MAAnalyticsEngine(source=source, reference=reference, clock=lambda: AS_OF)
    result = engine.get_deal_comps("Technology", years=2)

    assert result.period == "2 years"
    assert result.total_deals == 2
    assert [d.accession_number for d in result.deals] == ["D", "A"]
    assert result.deals[0].deal_value == 900.0
    assert result.deals[0].deal_type == DealType.MERGER
    assert result.stats.avg_deal_value == 1200.0
    assert result.stats.min_deal_value == 900.0
    assert result.stats.max_deal_value == 1500.0
    assert result.stats.avg_premium == 32.5
    assert result.sector_multiples == {"ev_sales": 8.5, "ev_ebitda": 22.0}
    assert dict(source.calls)["get_s4_bulk"]["days"] == 730


def test_deal_comps_empty(reference):
    engine = MAAnalyticsEngine(source=FakeSource(), reference=reference)
    result = engine.get_deal_comps("Energy")
    assert result.total_deals == 0
    assert result.stats is None


def test_deal_stats_ignores_missing_premiums():
    deals = [
        DealComp(deal_value=100, premium_offered=20),
        DealComp(deal_value=300, premium_offered=None),
        DealComp(deal_value=200, premium_offered=0),
    ]
    stats = deal_stats(deals)
    assert stats.median_deal_value == 200.0
    assert stats.avg_premium == 20.0
    assert stats.total_deals == 3


def test_serial_acquirers(reference):
    rows = (
        [filing(companyName="Acme Corp", isAcquisition=True) for _ in range(3)]
        + [filing(companyName="Microsoft Corporation", isAcquisition=True) for _ in range(2)]
        + [filing(companyName="Zeta Inc", isAcquisition=False)]
        + [filing(companyName=None, isAcquisition=True)]
    )
    source = FakeSource(eight_k=rows)
    engine = MAAnalyticsEngine(source=source, reference=reference)
    result = engine.get_serial_acquirers("Technology", years=5)

    assert [(a.company, a.count) for a in result.serial_acquirers] == [
        ("Acme Corp", 3),
        ("Microsoft Corporation", 2),
    ]
    assert not result.serial_acquirers[0].known_for_sector
    assert result.serial_acquirers[1].known_for_sector
    assert result.total_acquisitions == 7
    assert result.period == "5 years"
    assert dict(source.calls)["get_8k_bulk"]["items"] == "2.01"


def test_serial_acquirers_tie_keeps_first_seen(reference):
    rows = [filing(companyName=name, isAcquisition=True) for name in ("Zulu Inc", "Alpha Inc")]
    engine = MAAnalyticsEngine(source=FakeSource(eight_k=rows), reference=reference)
    result = engine.get_serial_acquirers("Energy")
    assert [a.company for a in result.serial_acquirers] == ["Zulu Inc", "Alpha Inc"]
