"""Rank and narrate already-fetched deal filings for chat display.

Six weighted factors, each 0-100:

  form_type           30   how M&A-specific the form is (S-4 > proxy > 8-K …)
  recency             20   days since filing
  company_activity    15   filings by the same company in the batch
  filing_complexity   15   item count plus document length
  keyword_signals     15   tiered deal keywords in summary + description
  item_relevance       5   best 8-K item (2.01 > 1.01 > 5.02 > 8.01)

Nothing is re-parsed here; candidates are feed rows or parsed summaries.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable

from alphavault.models import DealCandidate, RankedDeal, to_utc
from alphavault.reference_data import KeywordTiers, ReferenceData, get_reference_data
from alphavault.scoring import WeightedScorer, bucket, tiered_points

log = logging.getLogger(__name__)

RANKING_WEIGHTS: dict[str, float] = {
    "form_type": 30,
    "recency": 20,
    "company_activity": 15,
    "filing_complexity": 15,
    "keyword_signals": 15,
    "item_relevance": 5,
}

RANKING_LABELS: dict[str, str] = {
    "form_type": "Form Type",
    "recency": "Recency",
    "company_activity": "Company Activity",
    "filing_complexity": "Filing Complexity",
    "keyword_signals": "Keyword Signals",
    "item_relevance": "Item Relevance",
}

FORM_TYPE_SCORES: dict[str, int] = {
    "S-4": 100, "S-4/A": 100,
    "DEFM14A": 90, "PREM14A": 90, "SC TO-T": 90, "SC 14D9": 90,
    "425": 85,
    "8-K": 60,
    "SC 13D": 50,
    "10-K": 20, "10-Q": 20,
}
OTHER_FORM_SCORE = 10

# (max days since filing, score)
RECENCY_TIERS: tuple[tuple[int, int], ...] = ((7, 100), (30, 80), (60, 60), (90, 40), (180, 20))

ACTIVITY_TIERS: tuple[tuple[int, int], ...] = ((5, 100), (3, 75), (2, 50), (1, 25))

LENGTH_TIERS: tuple[tuple[int, int], ...] = ((2000, 40), (500, 25), (100, 10))
POINTS_PER_ITEM = 15
MAX_ITEM_POINTS = 60

ITEM_SCORES: dict[str, int] = {"2.01": 100, "1.01": 80, "5.02": 50, "8.01": 30}
OTHER_ITEM_SCORE = 10

CONFIDENCE_BANDS: tuple[tuple[int, tuple[str, str]], ...] = (
    (75, ("VERY LIKELY", "🟢")),
    (60, ("LIKELY", "🟢")),
    (45, ("MODERATE", "🟡")),
    (30, ("UNCERTAIN", "🟠")),
)
UNLIKELY = ("UNLIKELY", "🔴")


# ═══════════════════════════════════════════════════════════════════════════
#  Factor scores
# ═══════════════════════════════════════════════════════════════════════════

def score_form_type(form_type: str) -> int:
    return FORM_TYPE_SCORES.get(form_type.strip().upper(), OTHER_FORM_SCORE)


def score_recency(filed_date: datetime | None, as_of: datetime) -> int | None:
    """None when the filing date is unknown."""
    if filed_date is None:
        return None
    days = (to_utc(as_of) - to_utc(filed_date)).days
    for max_days, score in RECENCY_TIERS:
        if days <= max_days:
            return score
    return 0


def score_company_activity(filing_count: int) -> int:
    return tiered_points(filing_count, ACTIVITY_TIERS)


def score_filing_complexity(candidate: DealCandidate) -> int:
    item_points = min(MAX_ITEM_POINTS, POINTS_PER_ITEM * len(candidate.items))
    if candidate.document_length is not None:
        length = candidate.document_length
    else:
        length = len(candidate.summary) + len(candidate.description)
    return min(100, item_points + tiered_points(length, LENGTH_TIERS))


def score_keyword_signals(text: str, keywords: KeywordTiers) -> int:
    """Tier points per keyword occurrence, case-insensitive, capped at 100."""
    lowered = text.lower()
    points = 0
    for words, per_match in (
        (keywords.high, keywords.high_points),
        (keywords.medium, keywords.medium_points),
        (keywords.low, keywords.low_points),
    ):
        for word in words:
            points += lowered.count(word.lower()) * per_match
    return min(100, points)


def score_item_relevance(items: list[str]) -> int | None:
    """Best item score; None when the filing lists no items."""
    if not items:
        return None
    return max(ITEM_SCORES.get(item.strip(), OTHER_ITEM_SCORE) for item in items)


def confidence_for(score: int) -> tuple[str, str]:
    """(label, emoji) for a ranking score."""
    return bucket(score, CONFIDENCE_BANDS, UNLIKELY)


def _company_key(candidate: DealCandidate) -> str:
    return candidate.cik.lstrip("0") or candidate.company_name.strip().lower()


# ═══════════════════════════════════════════════════════════════════════════
#  Ranker
# ═══════════════════════════════════════════════════════════════════════════

class DealRanker:
    """Scores a batch of candidates against a fixed ``as_of`` moment."""

    def __init__(self, reference: ReferenceData | None = None, as_of: datetime | None = None):
        self.reference = reference or get_reference_data()
        self.as_of = to_utc(as_of) if as_of is not None else datetime.now(timezone.utc)
        self.scorer = WeightedScorer(RANKING_WEIGHTS, RANKING_LABELS)

    def factors(self, candidate: DealCandidate, activity: int) -> dict[str, int | None]:
        return {
            "form_type": score_form_type(candidate.form_type),
            "recency": score_recency(candidate.filed_date, self.as_of),
            "company_activity": score_company_activity(activity),
            "filing_complexity": score_filing_complexity(candidate),
            "keyword_signals": score_keyword_signals(
                f"{candidate.summary} {candidate.description}", self.reference.keywords),
            "item_relevance": score_item_relevance(candidate.items),
        }

    def rank(self, candidates: Iterable[DealCandidate | dict]) -> list[RankedDeal]:
        """Score every candidate; best first, then newest, then by company name."""
        deals = [c if isinstance(c, DealCandidate) else DealCandidate.model_validate(c) for c in candidates]
        activity = Counter(_company_key(d) for d in deals)

        ranked: list[RankedDeal] = []
        for deal in deals:
            factors = self.factors(deal, activity[_company_key(deal)])
            result = self.scorer.score(factors)
            label, emoji = confidence_for(result.score)
            ranked.append(RankedDeal(
                candidate=deal,
                score=result.score,
                confidence=label,
                emoji=emoji,
                factors=factors,
                breakdown=result.breakdown,
            ))

        oldest = datetime.min.replace(tzinfo=timezone.utc)
        ranked.sort(key=lambda r: r.candidate.company_name.lower())
        ranked.sort(key=lambda r: r.candidate.filed_date or oldest, reverse=True)
        ranked.sort(key=lambda r: r.score, reverse=True)
        log.debug("Ranked %d deals", len(ranked))
        return ranked


# ═══════════════════════════════════════════════════════════════════════════
#  Narration
# ═══════════════════════════════════════════════════════════════════════════

def _fmt_millions(value: float) -> str:
    if abs(value) >= 1000:
        return f"${value / 1000:,.1f}B"
    return f"${value:,.0f}M"


def narrate(ranked: list[RankedDeal], top: int = 5) -> str:
    """Chat-ready summary of the best ``top`` deals."""
    shown = ranked[:top]
    if not shown:
        return "📊 **M&A Deal Ranking**\n\nNo deals to rank."

    parts: list[str] = ["📊 **M&A Deal Ranking**", ""]
    for i, deal in enumerate(shown, 1):
        c = deal.candidate
        filed = c.filed_date.date().isoformat() if c.filed_date else "date unknown"
        parts.append(f"**{i}. {c.company_name}** ({c.form_type or 'unknown form'})")
        parts.append(f"{deal.emoji} {deal.confidence} | Score: {deal.score}/100")
        parts.append(f"📅 Filed: {filed}")
        if c.deal_value:
            parts.append(f"💰 Deal Value: {_fmt_millions(c.deal_value)}")
        if c.summary:
            summary = c.summary if len(c.summary) <= 160 else c.summary[:157] + "..."
            parts.append(f"📝 {summary}")
        parts.append("")

    best = shown[0]
    parts.append("💡 **Insights:**")
    parts.append(f"• Highest score: {best.candidate.company_name} ({best.score}/100)")
    likely = sum(1 for d in ranked if d.confidence in ("VERY LIKELY", "LIKELY"))
    parts.append(f"• {likely} of {len(ranked)} deals rated likely or better")
    total_value = sum(d.candidate.deal_value or 0 for d in shown)
    if total_value:
        parts.append(f"• Total disclosed deal value in top {len(shown)}: {_fmt_millions(total_value)}")
    s4_count = sum(1 for d in shown if d.candidate.form_type.upper().startswith("S-4"))
    if s4_count:
        parts.append(f"• {s4_count} merger registration(s) (S-4) in top {len(shown)}")
    return "\n".join(parts)


def recent_candidates(source, days: int = 30) -> list[DealCandidate]:
    """S-4s and acquisition / agreement 8-Ks filed in the last ``days`` days.

    ``source`` is a ``FilingSource`` (see ``alphavault.ma_analytics``).
    """
    s4 = source.get_s4_bulk(days=days)
    eight_k = source.get_8k_bulk(days=days, items="1.01,2.01")
    return [
        DealCandidate.model_validate(f.model_dump())
        for f in s4.filings + eight_k.filings
    ]
