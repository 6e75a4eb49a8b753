"""Tests for deal-level S-4 scores."""

from alphavault import deal_scoring
from alphavault.models import (
    Advisors,
    FinancialTerms,
    ParsedS4Record,
    Regulatory,
    RegulatoryApproval,
    RiskFactors,
    ShareholderInfo,
    TerminationClauses,
)


def _approvals(*authorities):
    return Regulatory(approvals_required=[RegulatoryApproval(authority=a) for a in authorities])


def test_empty_record_baselines():
    record = ParsedS4Record()
    assert deal_scoring.calculate_deal_quality_score(record) == 50
    assert deal_scoring.calculate_completion_probability(record) == 70
    assert deal_scoring.estimate_timeline(record) == 6
    assert deal_scoring.calculate_risk_score(record) == 0
    assert deal_scoring.calculate_advisor_prestige(record) == 0


def test_deal_quality_capped_at_100():
    record = ParsedS4Record(
        financial_terms=FinancialTerms(deal_value=1000, break_up_fee=30, exchange_ratio=0.5),
        advisors=Advisors(all_financial_advisors=["Lazard"], all_legal_counsel=["Ropes & Gray"]),
        regulatory=_approvals("FTC"),
    )
    assert deal_scoring.calculate_deal_quality_score(record) == 100


def test_completion_probability_bands():
    base = dict(
        termination_clauses=TerminationClauses(has_break_up_fee=True),
        shareholder_info=ShareholderInfo(support_agreements=True),
    )
    three = ParsedS4Record(regulatory=_approvals("FTC", "DOJ", "SEC"), **base)
    five = ParsedS4Record(regulatory=_approvals("FTC", "DOJ", "SEC", "EC", "CFIUS"), **base)
    assert deal_scoring.calculate_completion_probability(three) == 85
    assert deal_scoring.calculate_completion_probability(five) == 75


def test_completion_probability_high_risk():
    record = ParsedS4Record(risk_factors=RiskFactors(risk_count=8))
    assert deal_scoring.calculate_completion_probability(record) == 55


def test_timeline_counts_ftc_doj_once():
    record = ParsedS4Record(regulatory=_approvals("FTC", "DOJ", "EC", "CFIUS", "Shareholders"))
    assert deal_scoring.estimate_timeline(record) == 6 + 6 + 9 + 4 + 2


def test_risk_score_capped():
    record = ParsedS4Record(
        risk_factors=RiskFactors(risk_count=10),
        regulatory=_approvals("FTC", "DOJ", "SEC", "EC", "CFIUS", "Shareholders"),
    )
    assert deal_scoring.calculate_risk_score(record) == 98
    record.risk_factors.risk_count = 12
    assert deal_scoring.calculate_risk_score(record) == 100


def test_advisor_prestige(reference):
    record = ParsedS4Record(advisors=Advisors(
        all_legal_counsel=["Wachtell, Lipton, Rosen & Katz", "Ropes & Gray"],
        all_financial_advisors=["Goldman Sachs", "Evercore", "Jefferies"],
    ))
    assert deal_scoring.calculate_advisor_prestige(record, reference) == 60


def test_stage_months_large_deal():
    months = deal_scoring.stage_months({"FTC", "SEC"}, deal_scoring.REGULATORY_STAGES, deal_value=20_000)
    assert months == {"FTC/DOJ Review": 12, "SEC Review": 3}
    small = deal_scoring.stage_months({"FTC"}, deal_scoring.REGULATORY_STAGES, deal_value=500)
    assert small == {"FTC/DOJ Review": 6}


def test_compute_deal_analytics(reference):
    record = ParsedS4Record(
        financial_terms=FinancialTerms(deal_value=2000, break_up_fee=60, break_up_fee_percentage=3.0),
        regulatory=_approvals("Shareholders"),
    )
    analytics = deal_scoring.compute_deal_analytics(record, reference)
    assert analytics.deal_quality_score == 80
    assert analytics.estimated_timeline_months == 8
    assert analytics.risk_score == 8
    assert analytics.break_up_fee_percentage == 3.0
