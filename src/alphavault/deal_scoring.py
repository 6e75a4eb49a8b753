"""Deal-level analytics over a parsed S-4.

Scores are additive point tables (``PointRule``) evaluated by
``alphavault.scoring``; regulatory timelines come from ``ReviewStage``
tables shared with ``ma_analytics.predict_regulatory_timeline``.
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple

from alphavault.models import DealAnalytics, ParsedS4Record
from alphavault.reference_data import ReferenceData, get_reference_data
from alphavault.scoring import PointRule, apply_point_rules

log = logging.getLogger(__name__)

LARGE_DEAL_THRESHOLD = 10_000        # USD millions

# ═══════════════════════════════════════════════════════════════════════════
#  Regulatory review stages
# ═══════════════════════════════════════════════════════════════════════════

class ReviewStage(NamedTuple):
    """Months added when any of ``authorities`` must approve the deal."""
    label: str
    authorities: tuple[str, ...]
    months: int
    large_deal_months: int | None = None


# Timeline estimate attached to every parsed S-4
PARSED_DEAL_STAGES: tuple[ReviewStage, ...] = (
    ReviewStage("FTC/DOJ", ("FTC", "DOJ"), 6),
    ReviewStage("EC", ("EC",), 9),
    ReviewStage("CFIUS", ("CFIUS",), 4),
    ReviewStage("Shareholders", ("Shareholders",), 2),
)

# Per-authority breakdown used by the analytics engine
REGULATORY_STAGES: tuple[ReviewStage, ...] = (
    ReviewStage("FTC/DOJ Review", ("FTC", "DOJ"), 6, large_deal_months=12),
    ReviewStage("SEC Review", ("SEC",), 3),
    ReviewStage("European Commission", ("EC",), 9),
    ReviewStage("CFIUS Review", ("CFIUS",), 6),
    ReviewStage("Shareholder Vote", ("Shareholders",), 2),
)


def stage_months(
    authorities: Iterable[str],
    stages: Iterable[ReviewStage],
    deal_value: float | None = None,
    threshold: float = LARGE_DEAL_THRESHOLD,
) -> dict[str, int]:
    """Months per stage label for the stages the authorities trigger."""
    required = set(authorities)
    large = deal_value is not None and deal_value > threshold
    months: dict[str, int] = {}
    for stage in stages:
        if required.intersection(stage.authorities):
            if large and stage.large_deal_months is not None:
                months[stage.label] = stage.large_deal_months
            else:
                months[stage.label] = stage.months
    return months


# ═══════════════════════════════════════════════════════════════════════════
#  Point tables
# ═══════════════════════════════════════════════════════════════════════════

def _approval_count(r: ParsedS4Record) -> int:
    return len(r.regulatory.approvals_required)


DEAL_QUALITY_RULES: tuple[PointRule, ...] = (
    PointRule("deal_value", 15, lambda r: bool(r.financial_terms.deal_value)),
    PointRule("break_up_fee", 10, lambda r: bool(r.financial_terms.break_up_fee)),
    PointRule("exchange_ratio", 5, lambda r: bool(r.financial_terms.exchange_ratio)),
    PointRule("financial_advisor", 10, lambda r: len(r.advisors.all_financial_advisors) > 0),
    PointRule("legal_counsel", 5, lambda r: len(r.advisors.all_legal_counsel) > 0),
    PointRule("synergies", 10, lambda r: bool(r.synergies.total_synergies)),
    PointRule("approvals", 5, lambda r: _approval_count(r) > 0),
)

# Bands are exclusive: more than 4 approvals costs 20, not 30
COMPLETION_RULES: tuple[PointRule, ...] = (
    PointRule("break_up_fee", 15, lambda r: r.termination_clauses.has_break_up_fee),
    PointRule("support_agreements", 10, lambda r: r.shareholder_info.support_agreements),
    PointRule("many_approvals", -20, lambda r: _approval_count(r) > 4),
    PointRule("several_approvals", -10, lambda r: 2 < _approval_count(r) <= 4),
    PointRule("high_risk_count", -15, lambda r: r.risk_factors.risk_count > 7),
)

BASE_TIMELINE_MONTHS = 6


# ═══════════════════════════════════════════════════════════════════════════
#  Scores
# ═══════════════════════════════════════════════════════════════════════════

def calculate_deal_quality_score(record: ParsedS4Record) -> int:
    """Completeness of the disclosed deal terms, 50-100."""
    return apply_point_rules(record, 50, DEAL_QUALITY_RULES)


def calculate_completion_probability(record: ParsedS4Record) -> int:
    """Likelihood the deal closes, 0-100."""
    return apply_point_rules(record, 70, COMPLETION_RULES)


def estimate_timeline(record: ParsedS4Record) -> int:
    """Months to close: 6 plus the review stages the approvals trigger."""
    months = stage_months(record.regulatory.authorities, PARSED_DEAL_STAGES)
    return BASE_TIMELINE_MONTHS + sum(months.values())


def calculate_risk_score(record: ParsedS4Record) -> int:
    return min(100, 5 * record.risk_factors.risk_count + 8 * _approval_count(record))


def calculate_advisor_prestige(record: ParsedS4Record, reference: ReferenceData | None = None) -> int:
    """+20 per counsel or bank from the top-tier lists, capped at 100."""
    ref = reference or get_reference_data()
    score = 0
    for firm in record.advisors.all_legal_counsel:
        if any(top in firm for top in ref.top_law_firms):
            score += 20
    for bank in record.advisors.all_financial_advisors:
        if any(top in bank for top in ref.top_banks):
            score += 20
    return min(100, score)


def compute_deal_analytics(record: ParsedS4Record, reference: ReferenceData | None = None) -> DealAnalytics:
    analytics = DealAnalytics(
        deal_quality_score=calculate_deal_quality_score(record),
        completion_probability=calculate_completion_probability(record),
        break_up_fee_percentage=record.financial_terms.break_up_fee_percentage,
        estimated_timeline_months=estimate_timeline(record),
        risk_score=calculate_risk_score(record),
        advisor_prestige_score=calculate_advisor_prestige(record, reference),
    )
    log.debug(
        "Deal analytics: quality=%d completion=%d timeline=%dm risk=%d",
        analytics.deal_quality_score, analytics.completion_probability,
        analytics.estimated_timeline_months, analytics.risk_score,
    )
    return analytics
