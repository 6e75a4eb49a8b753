"""M&A analytics: takeover probability, premiums, timelines, deal comps.

``MAAnalyticsEngine`` reads filing feeds through a ``FilingSource`` (the
``FeedClient`` in production, an in-memory fake in tests) and combines
them into scores:

  calculate_ma_probability   seven weighted signals → 0-100 probability
  calculate_takeover_premium sector premium ± size adjustment
  predict_regulatory_timeline months per review stage → close date
  calculate_integration_risk five weighted sub-risks
  analyze_break_up_fee       fee as % of deal value vs the 2-4% norm
  get_deal_comps             parsed S-4 deal values + pandas statistics
  get_serial_acquirers       acquisition 8-Ks grouped by company

Signals without data are None, not 0: they drop out of the weighted
average and the remaining weights are renormalised.  A failed feed fetch
marks the signals that depend on it unavailable and is reported in
``errors``; only company resolution is allowed to fail the whole call.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

import pandas as pd

from alphavault import form_s4
from alphavault.deal_scoring import REGULATORY_STAGES, stage_months
from alphavault.models import (
    BreakUpFeeAnalysis,
    CompanyRef,
    DealComp,
    DealCompsResult,
    DealCompStats,
    FeedFiling,
    FilingFeed,
    IntegrationRisk,
    MAProbabilityResult,
    MaterialEvents,
    ParsedS4Record,
    ParseFailure,
    ProbabilityLevel,
    RegulatoryTimeline,
    RiskLevel,
    SerialAcquirer,
    SerialAcquirersResult,
    TakeoverPremium,
    to_utc,
)
from alphavault.reference_data import ReferenceData, get_reference_data
from alphavault.scoring import WeightedScorer, bucket, round_half_up

log = logging.getLogger(__name__)


class FilingSource(Protocol):
    """Where the engine gets its filings from."""

    def resolve_company(self, ticker: str) -> CompanyRef: ...

    def get_8k_bulk(self, days: int = 90, items: str = "", max_results: int = 500) -> FilingFeed: ...

    def get_s4_feed(self, cik: str = "", limit: int = 50) -> FilingFeed: ...

    def get_s4_bulk(self, days: int = 90, max_results: int = 200) -> FilingFeed: ...

    def get_s4_content(self, accession: str, cik: str) -> str: ...

    def get_material_events(self, cik: str = "", days: int = 30) -> MaterialEvents: ...


# ═══════════════════════════════════════════════════════════════════════════
#  Weights & labels
# ═══════════════════════════════════════════════════════════════════════════

SIGNAL_WEIGHTS: dict[str, float] = {
    "unusual_8k_activity": 25,
    "material_agreements": 20,
    "leadership_changes": 15,
    "board_meetings": 15,
    "legal_counsel_changes": 10,
    "insider_freeze": 10,
    "institutional_accumulation": 5,
}

SIGNAL_LABELS: dict[str, str] = {
    "unusual_8k_activity": "Unusual 8-K Activity",
    "material_agreements": "Material Agreements",
    "leadership_changes": "Leadership Changes",
    "board_meetings": "Board Meeting Frequency",
    "legal_counsel_changes": "M&A Legal Counsel",
    "insider_freeze": "Insider Selling Freeze",
    "institutional_accumulation": "Institutional Accumulation",
}

# Signals computed from the 8-K bulk feed
EIGHT_K_SIGNALS = ("unusual_8k_activity", "leadership_changes", "board_meetings", "legal_counsel_changes")

PROBABILITY_BANDS: tuple[tuple[int, ProbabilityLevel], ...] = (
    (70, ProbabilityLevel.VERY_HIGH),
    (50, ProbabilityLevel.HIGH),
    (30, ProbabilityLevel.MODERATE),
)

QUALITY_BANDS: tuple[tuple[int, RiskLevel], ...] = ((70, RiskLevel.HIGH), (40, RiskLevel.MEDIUM))

INTEGRATION_WEIGHTS: dict[str, float] = {
    "cultural_mismatch": 25,
    "debt_level": 20,
    "synergy_realization": 25,
    "regulatory_complexity": 15,
    "integration_timeline": 15,
}

INTEGRATION_LABELS: dict[str, str] = {
    "cultural_mismatch": "Cultural Mismatch",
    "debt_level": "Debt Level",
    "synergy_realization": "Synergy Realization",
    "regulatory_complexity": "Regulatory Complexity",
    "integration_timeline": "Integration Timeline",
}

BREAK_UP_FEE_IMPLICATIONS: dict[str, str] = {
    "HIGH": "High break-up fee suggests strong deal protection. Deal is likely to close.",
    "STANDARD": "Standard break-up fee. Normal deal protection.",
    "LOW": "Low break-up fee. Less deal protection, higher risk of termination.",
}

MATERIAL_AGREEMENT_KEYS = ("materialAgreements", "material_agreements")

STANDARD_CLOSE_MONTHS = 4
MAX_SERIAL_ACQUIRERS = 20

_BOARD_ACTIVITY_RE = re.compile(r"board.*meeting|special.*committee", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(\d{4})\b")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _same_cik(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and a.lstrip("0") == b.lstrip("0")


# ═══════════════════════════════════════════════════════════════════════════
#  Signal analysers
# ═══════════════════════════════════════════════════════════════════════════

def analyze_unusual_8k_activity(filings: list[FeedFiling], as_of: datetime) -> int:
    """Filing pace of the last 30 days against the 30 days before."""
    if not filings:
        return 0
    as_of = to_utc(as_of)
    thirty = as_of - timedelta(days=30)
    sixty = as_of - timedelta(days=60)
    dated = [f.filed_date for f in filings if f.filed_date is not None]
    recent = sum(1 for d in dated if thirty < d <= as_of)
    prior = sum(1 for d in dated if sixty < d <= thirty)

    ratio = recent / prior if prior > 0 else 1
    if ratio >= 3:
        return 100
    if ratio >= 2:
        return 75
    if ratio >= 1.5:
        return 50
    if recent >= 3:
        return 30
    return 0


def analyze_material_agreements(events: MaterialEvents) -> int:
    count = 0
    for key in MATERIAL_AGREEMENT_KEYS:
        if key in events.categorized:
            count = len(events.categorized[key])
            break
    if count >= 3:
        return 100
    return {2: 70, 1: 40}.get(count, 0)


def analyze_leadership_changes(filings: list[FeedFiling]) -> int:
    count = sum(1 for f in filings if f.is_leadership_change)
    if count >= 3:
        return 90
    return {2: 60, 1: 30}.get(count, 0)


def analyze_board_activity(filings: list[FeedFiling]) -> int:
    count = sum(1 for f in filings if _BOARD_ACTIVITY_RE.search(f.summary or ""))
    if count >= 2:
        return 80
    return 40 if count == 1 else 0


def analyze_legal_counsel(filings: list[FeedFiling], ma_law_firms: list[str]) -> int:
    """70 if any summary names an M&A law firm."""
    firms = [firm.lower() for firm in ma_law_firms]
    for filing in filings:
        summary = (filing.summary or "").lower()
        if any(firm in summary for firm in firms):
            return 70
    return 0


def data_quality(signals: dict[str, int | None]) -> RiskLevel:
    """Share of all signals carrying a positive reading."""
    if not signals:
        return RiskLevel.LOW
    with_data = sum(1 for v in signals.values() if v is not None and v > 0)
    return bucket(round_half_up(with_data / len(signals) * 100), QUALITY_BANDS, RiskLevel.LOW)


# ═══════════════════════════════════════════════════════════════════════════
#  Deal-level sub-risks
# ═══════════════════════════════════════════════════════════════════════════

def assess_debt_risk(record: ParsedS4Record) -> int:
    deal_value = record.financial_terms.deal_value or 0
    if deal_value > 10_000:
        return 70
    if deal_value > 5_000:
        return 50
    return 30


def assess_synergy_risk(record: ParsedS4Record) -> int:
    synergies = record.synergies.total_synergies
    deal_value = record.financial_terms.deal_value
    if synergies and deal_value:
        ratio = synergies / deal_value
        if ratio > 0.2:
            return 30
        if ratio > 0.1:
            return 50
        return 70
    return 60


def assess_regulatory_risk(record: ParsedS4Record) -> int:
    authorities = record.regulatory.authorities
    if {"FTC", "DOJ"} <= authorities:
        return 80
    if authorities & {"FTC", "DOJ"}:
        return 60
    if len(record.regulatory.approvals_required) > 2:
        return 50
    return 30


def assess_timeline_risk(record: ParsedS4Record, as_of: datetime) -> int:
    """Closing after this calendar year is riskier than closing within it."""
    m = _YEAR_RE.search(record.deal_structure.effective_date or "")
    if not m:
        return 50
    year = int(m.group(1))
    if year > as_of.year:
        return 70
    if year == as_of.year:
        return 40
    return 50


# ═══════════════════════════════════════════════════════════════════════════
#  Deal comps statistics
# ═══════════════════════════════════════════════════════════════════════════

def deal_stats(deals: list[DealComp]) -> DealCompStats | None:
    if not deals:
        return None
    frame = pd.DataFrame({
        "deal_value": [d.deal_value for d in deals],
        "premium": [d.premium_offered for d in deals],
    })
    values = frame["deal_value"].dropna()
    values = values[values != 0]
    premiums = frame["premium"].dropna()
    premiums = premiums[premiums != 0]
    return DealCompStats(
        avg_deal_value=float(values.mean()) if not values.empty else 0.0,
        median_deal_value=float(values.median()) if not values.empty else 0.0,
        min_deal_value=float(values.min()) if not values.empty else 0.0,
        max_deal_value=float(values.max()) if not values.empty else 0.0,
        avg_premium=float(premiums.mean()) if not premiums.empty else 0.0,
        median_premium=float(premiums.median()) if not premiums.empty else 0.0,
        total_deals=len(deals),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Engine
# ═══════════════════════════════════════════════════════════════════════════

class MAAnalyticsEngine:
    """M&A scores over a ``FilingSource``.

    ``clock`` returns the current UTC time; every date window is measured
    from it unless a call passes ``as_of`` explicitly.
    """

    def __init__(
        self,
        source: FilingSource | None = None,
        reference: ReferenceData | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        if source is None:
            from alphavault.feed_client import get_feed_client
            source = get_feed_client()
        self.source = source
        self.reference = reference or get_reference_data()
        self.clock = clock or _utc_now
        self.probability_scorer = WeightedScorer(SIGNAL_WEIGHTS, SIGNAL_LABELS)
        self.integration_scorer = WeightedScorer(INTEGRATION_WEIGHTS, INTEGRATION_LABELS)

    def _as_of(self, as_of: datetime | None) -> datetime:
        return to_utc(as_of) if as_of is not None else to_utc(self.clock())

    # ── M&A probability ───────────────────────────────────────────────

    def calculate_ma_probability(
        self,
        ticker: str,
        lookback_days: int = 90,
        as_of: datetime | None = None,
    ) -> MAProbabilityResult:
        """Probability (0-100) that the company is involved in M&A soon.

        Raises ``UpstreamFetchFailure`` only if the ticker cannot be resolved.
        """
        as_of = self._as_of(as_of)
        company = self.source.resolve_company(ticker)
        log.info("M&A probability for %s (CIK %s)", ticker, company.cik)

        with ThreadPoolExecutor(max_workers=3) as executor:
            futures = {
                "8-K bulk": executor.submit(
                    self.source.get_8k_bulk, days=lookback_days, items="1.01,2.01,5.02"),
                "S-4 feed": executor.submit(self.source.get_s4_feed, cik=company.cik, limit=50),
                "material events": executor.submit(
                    self.source.get_material_events, cik=company.cik, days=lookback_days),
            }
            fetched: dict[str, object] = {}
            errors: list[str] = []
            for name, future in futures.items():
                try:
                    fetched[name] = future.result()
                except Exception as exc:
                    log.warning("%s fetch failed for %s: %s", name, ticker, exc)
                    errors.append(f"{name}: {exc}")

        signals: dict[str, int | None] = {key: None for key in SIGNAL_WEIGHTS}

        eight_k = fetched.get("8-K bulk")
        if isinstance(eight_k, FilingFeed):
            company_8k = [f for f in eight_k.filings if _same_cik(f.cik, company.cik)]
            signals["unusual_8k_activity"] = analyze_unusual_8k_activity(company_8k, as_of)
            signals["leadership_changes"] = analyze_leadership_changes(company_8k)
            signals["board_meetings"] = analyze_board_activity(company_8k)
            signals["legal_counsel_changes"] = analyze_legal_counsel(company_8k, self.reference.ma_law_firms)

        events = fetched.get("material events")
        if isinstance(events, MaterialEvents):
            signals["material_agreements"] = analyze_material_agreements(events)

        s4 = fetched.get("S-4 feed")
        if isinstance(s4, FilingFeed):
            log.debug("%s has %d S-4 filings on the feed", ticker, len(s4.filings))

        # insider_freeze / institutional_accumulation need ownership data: unavailable
        result = self.probability_scorer.score(signals)
        return MAProbabilityResult(
            ticker=ticker.upper(),
            company_name=company.company_name,
            cik=company.cik,
            probability_score=result.score,
            risk_level=bucket(result.score, PROBABILITY_BANDS, ProbabilityLevel.LOW),
            signals=signals,
            weights=dict(SIGNAL_WEIGHTS),
            data_quality=data_quality(signals),
            breakdown=result.breakdown,
            errors=errors,
            as_of=as_of,
        )

    # ── Deal-level estimators ─────────────────────────────────────────

    def calculate_takeover_premium(self, current_price: float, sector: str, market_cap: float) -> TakeoverPremium:
        """Expected takeover premium; ``market_cap`` in USD millions."""
        premium = self.reference.premium_for(sector)
        if market_cap < 1_000:
            premium += 5
        elif market_cap > 50_000:
            premium -= 5

        if 5_000 <= market_cap <= 50_000:
            confidence = RiskLevel.HIGH
        elif 1_000 <= market_cap <= 100_000:
            confidence = RiskLevel.MEDIUM
        else:
            confidence = RiskLevel.LOW

        multiples = self.reference.multiples_for(sector)
        return TakeoverPremium(
            current_price=current_price,
            estimated_premium=premium,
            target_price=current_price * (1 + premium / 100),
            sector=sector,
            market_cap=market_cap,
            confidence_level=confidence,
            ev_sales=multiples.ev_sales,
            ev_ebitda=multiples.ev_ebitda,
        )

    def predict_regulatory_timeline(self, record: ParsedS4Record, as_of: datetime | None = None) -> RegulatoryTimeline:
        as_of = self._as_of(as_of)
        timelines = stage_months(
            record.regulatory.authorities, REGULATORY_STAGES,
            deal_value=record.financial_terms.deal_value,
        )
        if not timelines:
            timelines = {"Standard Close": STANDARD_CLOSE_MONTHS}
        total = sum(timelines.values())
        # DateOffset clamps to month end (Jan 31 + 1 month → Feb 28/29)
        close = (pd.Timestamp(as_of) + pd.DateOffset(months=total)).date()
        if total > 12:
            complexity = RiskLevel.HIGH
        elif total > 6:
            complexity = RiskLevel.MEDIUM
        else:
            complexity = RiskLevel.LOW
        return RegulatoryTimeline(
            total_months=total,
            timelines=timelines,
            estimated_close_date=close,
            complexity=complexity,
        )

    def calculate_integration_risk(self, record: ParsedS4Record, as_of: datetime | None = None) -> IntegrationRisk:
        as_of = self._as_of(as_of)
        risks: dict[str, int | None] = {
            "cultural_mismatch": None,       # no culture data source
            "debt_level": assess_debt_risk(record),
            "synergy_realization": assess_synergy_risk(record),
            "regulatory_complexity": assess_regulatory_risk(record),
            "integration_timeline": assess_timeline_risk(record, as_of),
        }
        result = self.integration_scorer.score(risks)
        return IntegrationRisk(
            overall_risk=result.score,
            risks=risks,
            weights=dict(INTEGRATION_WEIGHTS),
            risk_level=bucket(result.score, QUALITY_BANDS, RiskLevel.LOW),
            breakdown=result.breakdown,
        )

    def analyze_break_up_fee(self, record: ParsedS4Record) -> BreakUpFeeAnalysis:
        fee = record.financial_terms.break_up_fee
        deal_value = record.financial_terms.deal_value
        if not fee or not deal_value:
            return BreakUpFeeAnalysis(
                has_break_up_fee=False,
                message="No break-up fee information available",
            )
        pct = fee / deal_value * 100
        if pct > 5:
            assessment = "HIGH"
        elif pct < 2:
            assessment = "LOW"
        else:
            assessment = "STANDARD"
        return BreakUpFeeAnalysis(
            has_break_up_fee=True,
            break_up_fee=fee,
            deal_value=deal_value,
            fee_percentage=round(pct, 2),
            assessment=assessment,
            implications=BREAK_UP_FEE_IMPLICATIONS[assessment],
        )

    # ── Market-wide views ─────────────────────────────────────────────

    def get_deal_comps(self, sector: str, years: int = 2, max_results: int = 500) -> DealCompsResult:
        """Recent S-4 deals with a disclosed deal value, newest first."""
        feed = self.source.get_s4_bulk(days=years * 365, max_results=max_results)
        log.info("Deal comps for %s: %d S-4 filings to parse", sector, len(feed.filings))

        deals: list[DealComp] = []
        for filing in feed.filings:
            if not filing.accession_number:
                continue
            try:
                text = self.source.get_s4_content(filing.accession_number, filing.cik)
            except Exception as exc:
                log.warning("Skipping deal %s: %s", filing.accession_number, exc)
                continue
            parsed = form_s4.parse(text, reference=self.reference)
            if isinstance(parsed, ParseFailure):
                log.warning("Skipping deal %s: %s", filing.accession_number, parsed.error)
                continue
            if not parsed.financial_terms.deal_value:
                continue
            deals.append(DealComp(
                company_name=filing.company_name,
                accession_number=filing.accession_number,
                filed_date=filing.filed_date,
                deal_value=parsed.financial_terms.deal_value,
                deal_type=parsed.deal_structure.deal_type,
                exchange_ratio=parsed.financial_terms.exchange_ratio,
                premium_offered=parsed.financial_terms.premium_offered,
                synergies=parsed.synergies.total_synergies,
            ))

        oldest = datetime.min.replace(tzinfo=timezone.utc)
        deals.sort(key=lambda d: d.filed_date or oldest, reverse=True)
        return DealCompsResult(
            sector=sector,
            period=f"{years} years",
            total_deals=len(deals),
            deals=deals,
            stats=deal_stats(deals),
            sector_multiples=self.reference.multiples_for(sector).model_dump(),
        )

    def get_serial_acquirers(self, sector: str, years: int = 5, max_results: int = 1000) -> SerialAcquirersResult:
        """Companies with the most completed acquisitions (Item 2.01 8-Ks)."""
        feed = self.source.get_8k_bulk(days=years * 365, items="2.01", max_results=max_results)
        rows = [{"company": f.company_name} for f in feed.filings if f.is_acquisition and f.company_name]

        acquirers: list[SerialAcquirer] = []
        if rows:
            counts = (
                pd.DataFrame(rows)
                .groupby("company", sort=False)
                .size()
                .sort_values(ascending=False, kind="stable")
                .head(MAX_SERIAL_ACQUIRERS)
            )
            known = [name.lower() for name in self.reference.serial_acquirers.get(sector, [])]
            for company, count in counts.items():
                lowered = str(company).lower()
                acquirers.append(SerialAcquirer(
                    company=str(company),
                    count=int(count),
                    known_for_sector=any(k in lowered or lowered in k for k in known),
                ))

        return SerialAcquirersResult(
            sector=sector,
            period=f"{years} years",
            serial_acquirers=acquirers,
            total_acquisitions=feed.count,
        )
