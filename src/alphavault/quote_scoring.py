"""Composite investment score from a live quote and a company profile.

Five sub-scores (technical, momentum, value, sentiment, quality) are
combined by a ``WeightedScorer`` into a 0-100 overall score and a rating
from Strong Buy to Strong Sell.  Quality and risk use additive point
tables mapped to a letter grade and a risk rating.

Missing profile ratios fall back to neutral values: ROE and margin 0,
debt/equity 999 for the quality grade (no credit) and 0 for risk, beta 1.
"""

from __future__ import annotations

import logging

from alphavault.models import CompanyProfile, Quote, QuoteScore
from alphavault.scoring import WeightedScorer, bucket, clamp, round_half_up

log = logging.getLogger(__name__)

OVERALL_WEIGHTS: dict[str, float] = {
    "technical": 25,
    "momentum": 20,
    "value": 25,
    "sentiment": 15,
    "quality": 15,
}

OVERALL_LABELS: dict[str, str] = {
    "technical": "Technical Strength",
    "momentum": "Momentum",
    "value": "Value",
    "sentiment": "Sentiment",
    "quality": "Quality",
}

NEUTRAL_SENTIMENT = 50

GRADE_SCORES: dict[str, int] = {
    "A+": 100, "A": 95, "A-": 90,
    "B+": 85, "B": 80, "B-": 75,
    "C+": 70, "C": 65, "C-": 60,
    "D+": 55, "D": 50, "D-": 45,
}

# gradeScore 0-12 → letter
GRADE_BANDS: tuple[tuple[int, str], ...] = (
    (11, "A+"), (10, "A"), (9, "A-"), (8, "B+"), (7, "B"), (6, "B-"),
    (5, "C+"), (4, "C"), (3, "C-"), (2, "D+"), (1, "D"),
)

RATING_BANDS: tuple[tuple[int, str], ...] = (
    (85, "Strong Buy"), (70, "Buy"), (50, "Hold"), (35, "Sell"),
)

# USD millions
MARKET_CAP_CATEGORIES: tuple[tuple[float, str], ...] = (
    (300, "Nano Cap"), (2_000, "Micro Cap"), (10_000, "Small Cap"),
    (50_000, "Mid Cap"), (200_000, "Large Cap"),
)

DATA_QUALITY_BANDS: tuple[tuple[int, str], ...] = ((90, "Excellent"), (70, "Good"), (50, "Fair"))


# ═══════════════════════════════════════════════════════════════════════════
#  Sub-scores
# ═══════════════════════════════════════════════════════════════════════════

def day_range_position(quote: Quote) -> float | None:
    """0 at the day low, 1 at the day high."""
    if quote.current is None or quote.high is None or quote.low is None:
        return None
    if quote.high <= quote.low:
        return None
    return (quote.current - quote.low) / (quote.high - quote.low)


def technical_score(quote: Quote) -> int:
    score = 50

    position = day_range_position(quote)
    if position is not None:
        if position >= 0.8:
            score += 20
        elif position >= 0.6:
            score += 10
        elif position <= 0.2:
            score -= 15
        elif position <= 0.4:
            score -= 5

    if quote.volume and quote.avg_volume:
        ratio = quote.volume / quote.avg_volume
        if ratio >= 2:
            score += 15
        elif ratio >= 1.5:
            score += 10
        elif ratio <= 0.5:
            score -= 10

    pc = quote.change_percent
    if pc > 5:
        score += 15
    elif pc > 2:
        score += 10
    elif pc > 0:
        score += 5
    elif pc < -5:
        score -= 15
    elif pc < 0:
        score -= 5

    return int(clamp(score))


def momentum_score(change_percent: float) -> int:
    """-20% → 0, 0% → 50, +20% → 100."""
    return int(clamp(round_half_up((change_percent + 20) / 40 * 100)))


def _points_above(value: float, tiers: tuple[tuple[float, int], ...]) -> int:
    """Points of the first tier ``value`` strictly exceeds."""
    for floor, points in tiers:
        if value > floor:
            return points
    return 0


def quality_grade(profile: CompanyProfile) -> str:
    roe = profile.roe or 0
    margin = profile.profit_margin or 0
    debt = profile.debt_to_equity if profile.debt_to_equity is not None else 999

    points = _points_above(roe, ((20, 4), (15, 3), (10, 2), (5, 1)))
    points += _points_above(margin, ((30, 4), (20, 3), (10, 2), (5, 1)))
    if debt < 0.5:
        points += 4
    elif debt < 1:
        points += 3
    elif debt < 2:
        points += 2
    elif debt < 3:
        points += 1
    return bucket(points, GRADE_BANDS, "D-")


def risk_rating(profile: CompanyProfile) -> str:
    beta = profile.beta if profile.beta is not None else 1
    debt = profile.debt_to_equity or 0
    margin = profile.profit_margin or 0

    points = 0
    if beta > 2:
        points += 3
    elif beta > 1.5:
        points += 2
    elif beta > 1:
        points += 1

    if debt > 3:
        points += 3
    elif debt > 2:
        points += 2
    elif debt > 1:
        points += 1

    if margin < 0:
        points += 3
    elif margin < 5:
        points += 2
    elif margin < 10:
        points += 1

    if points <= 2:
        return "Low"
    if points <= 4:
        return "Medium"
    if points <= 6:
        return "High"
    return "Very High"


def turnover_percent(quote: Quote, profile: CompanyProfile) -> float | None:
    """Traded dollar volume as % of market cap."""
    if not quote.current or not quote.volume or not profile.market_cap:
        return None
    return quote.current * quote.volume / 1_000_000 / profile.market_cap * 100


def value_score(quote: Quote, profile: CompanyProfile) -> int:
    score = 50

    turnover = turnover_percent(quote, profile)
    if turnover is not None:
        if turnover >= 1:
            score += 10
        elif turnover >= 0.3:
            score += 5
        elif turnover < 0.05:
            score -= 10

    # Contrarian: sell-offs add value, spikes remove it
    pc = quote.change_percent
    if pc < -5:
        score += 15
    elif pc < -2:
        score += 10
    elif pc > 10:
        score -= 15
    elif pc > 5:
        score -= 5

    return int(clamp(score))


def market_cap_category(market_cap: float | None) -> str:
    if not market_cap or market_cap <= 0:
        return "Unknown"
    for ceiling, label in MARKET_CAP_CATEGORIES:
        if market_cap < ceiling:
            return label
    return "Mega Cap"


def data_quality(quote: Quote, profile: CompanyProfile) -> str:
    present = [
        quote.current, quote.volume, profile.name, profile.market_cap,
        profile.roe, profile.profit_margin, profile.debt_to_equity, profile.beta,
    ]
    pct = sum(1 for v in present if v is not None) / len(present) * 100
    return bucket(pct, DATA_QUALITY_BANDS, "Limited")


def _insights(technical: int, momentum: int, value: int, grade: str, risk: str, quote: Quote) -> list[str]:
    insights: list[str] = []
    if momentum >= 70:
        insights.append(f"Strong upward momentum ({quote.change_percent:+.2f}% today)")
    elif momentum <= 30:
        insights.append(f"Heavy selling pressure ({quote.change_percent:+.2f}% today)")
    if technical >= 70:
        insights.append("Trading near the top of its day range with supportive volume")
    elif technical <= 30:
        insights.append("Technically weak: near the day low or on thin volume")
    if value >= 65:
        insights.append("Attractive entry point after recent weakness")
    if grade[0] == "A":
        insights.append(f"High-quality fundamentals (grade {grade})")
    elif grade[0] == "D":
        insights.append(f"Weak fundamentals (grade {grade})")
    if risk in ("High", "Very High"):
        insights.append(f"{risk} risk profile: size positions accordingly")
    return insights


# ═══════════════════════════════════════════════════════════════════════════
#  Entry point
# ═══════════════════════════════════════════════════════════════════════════

_scorer = WeightedScorer(OVERALL_WEIGHTS, OVERALL_LABELS)


def score_quote(quote: Quote | dict, profile: CompanyProfile | dict | None = None) -> QuoteScore:
    """Overall 0-100 score, rating, grade, risk rating and insights."""
    if not isinstance(quote, Quote):
        quote = Quote.model_validate(quote)
    if profile is None:
        profile = CompanyProfile()
    elif not isinstance(profile, CompanyProfile):
        profile = CompanyProfile.model_validate(profile)

    technical = technical_score(quote)
    momentum = momentum_score(quote.change_percent)
    value = value_score(quote, profile)
    grade = quality_grade(profile)
    risk = risk_rating(profile)

    result = _scorer.score({
        "technical": technical,
        "momentum": momentum,
        "value": value,
        "sentiment": NEUTRAL_SENTIMENT,
        "quality": GRADE_SCORES[grade],
    })
    log.debug("Quote score for %s: %d", quote.symbol, result.score)

    return QuoteScore(
        symbol=quote.symbol,
        company_name=profile.name or quote.symbol or None,
        sector=profile.sector or "Unknown",
        overall_score=result.score,
        rating=bucket(result.score, RATING_BANDS, "Strong Sell"),
        technical_score=technical,
        momentum_score=momentum,
        value_score=value,
        sentiment_score=NEUTRAL_SENTIMENT,
        quality_grade=grade,
        risk_rating=risk,
        market_cap_category=market_cap_category(profile.market_cap),
        data_quality=data_quality(quote, profile),
        breakdown=result.breakdown,
        insights=_insights(technical, momentum, value, grade, risk, quote),
    )
