"""Pydantic models for parsed filings, scores and MCP tool outputs.

Dollar amounts extracted from filing text are USD millions
("$1.2 billion" → 1200.0).
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def to_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so feed dates and clocks compare cleanly."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FormType(str, Enum):
    S4 = "S-4"
    FORM_8K = "8-K"
    OTHER = "OTHER"


class DealType(str, Enum):
    MERGER = "merger"
    ACQUISITION = "acquisition"
    BUSINESS_COMBINATION = "business_combination"
    REVERSE_MERGER = "reverse_merger"
    TENDER_OFFER = "tender_offer"
    UNKNOWN = "unknown"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ProbabilityLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    VERY_HIGH = "VERY HIGH"


# ---------------------------------------------------------------------------
# Raw input & failures
# ---------------------------------------------------------------------------

class RawFiling(BaseModel):
    """Filing text as fetched by an external client.  Never mutated."""
    model_config = ConfigDict(frozen=True)

    text: str
    form_type: FormType = FormType.OTHER
    cik: str = ""
    accession_number: str = ""
    filed_date: datetime | None = None


class ParseFailure(BaseModel):
    """Degraded parse result returned instead of raising."""
    error: str
    error_type: str
    raw_text: str            # first 5000 chars, for debugging


class MoneyAmount(BaseModel):
    value: float
    currency: str = "USD"


# ---------------------------------------------------------------------------
# Filing header (shared by S-4 and 8-K)
# ---------------------------------------------------------------------------

class ConformedInfo(BaseModel):
    submission_type: str | None = None
    public_document_count: str | None = None
    period_of_report: str | None = None
    filed_as_of_date: str | None = None
    date_as_of_change: str | None = None


class FilerInfo(BaseModel):
    company_name: str | None = None
    cik: str | None = None
    irs_number: str | None = None
    state_of_incorporation: str | None = None
    fiscal_year_end: str | None = None


class HeaderMetadata(BaseModel):
    accession_number: str | None = None
    conformed: ConformedInfo = ConformedInfo()
    filer: FilerInfo = FilerInfo()
    trading_symbol: str | None = None


# ---------------------------------------------------------------------------
# Form S-4
# ---------------------------------------------------------------------------

class DealStructure(BaseModel):
    deal_type: DealType = DealType.UNKNOWN
    payment_structure: list[str] = []       # ordered subset of cash / stock / mixed
    acquirer_name: str | None = None
    target_name: str | None = None
    surviving_entity: str | None = None
    effective_date: str | None = None
    agreement_date: str | None = None


class Financing(BaseModel):
    debt_financing: bool = False
    equity_financing: bool = False
    cash_on_hand: bool = False
    committed: bool = False
    financing_amount: str | None = None


class FinancialTerms(BaseModel):
    deal_value: float | None = None
    deal_value_currency: str = "USD"
    break_up_fee: float | None = None
    break_up_fee_percentage: float | None = None
    exchange_ratio: float | None = None
    premium_offered: float | None = None
    premium_basis: str | None = None
    price_per_share: float | None = None
    financing: Financing = Financing()
    enterprise_value: float | None = None
    equity_value: float | None = None


class PartyInfo(BaseModel):
    name: str | None = None
    ticker: str | None = None
    jurisdiction: str | None = None
    website: str | None = None
    business_description: str | None = None


class Parties(BaseModel):
    acquirer: PartyInfo = PartyInfo()
    target: PartyInfo = PartyInfo()
    subsidiaries: list[str] = []


class Advisors(BaseModel):
    """Advisors found in the text.

    Acquirer/target attribution is positional (first match vs second match
    in reference-list order), not derived from the surrounding prose.
    """
    acquirer_legal_counsel: str | None = None
    target_legal_counsel: str | None = None
    all_legal_counsel: list[str] = []
    acquirer_financial_advisor: str | None = None
    target_financial_advisor: str | None = None
    all_financial_advisors: list[str] = []
    auditors: list[str] = []
    proxy_solicitor: str | None = None


class RegulatoryApproval(BaseModel):
    authority: str          # FTC / DOJ / SEC / CFIUS / EC / Shareholders
    required: bool = True
    description: str = ""


class Regulatory(BaseModel):
    approvals_required: list[RegulatoryApproval] = []
    hsr_required: bool = False
    hsr_filing_date: str | None = None
    foreign_filings_required: bool = False
    antitrust_concerns: bool = False
    regulatory_conditions: list[str] = []

    @property
    def authorities(self) -> set[str]:
        return {a.authority for a in self.approvals_required}


class ClosingCondition(BaseModel):
    type: str
    description: str
    satisfied: bool = False


class ClosingConditions(BaseModel):
    conditions: list[ClosingCondition] = []
    total_conditions: int = 0
    walk_away_rights: bool = False
    waiver_provisions: bool = False


class Synergies(BaseModel):
    total_synergies: float | None = None
    cost_synergies: float | None = None
    revenue_synergies: float | None = None
    synergy_timeframe: str | None = None     # years
    synergy_sources: list[str] = []
    strategic_rationale: str = ""


class RiskFactors(BaseModel):
    risks: dict[str, bool] = {}
    risk_count: int = 0
    risk_level: RiskLevel = RiskLevel.LOW
    material_adverse_effect: bool = False
    risk_excerpts: list[str] = []


class TerminationRights(BaseModel):
    by_acquirer: bool = False
    by_target: bool = False
    mutual: bool = False


class TerminationClauses(BaseModel):
    has_break_up_fee: bool = False
    break_up_fee_amount: float | None = None
    has_reverse_break_up_fee: bool = False
    reverse_break_up_fee_amount: float | None = None
    termination_rights: TerminationRights = TerminationRights()
    triggering_events: list[str] = []
    outside_date: str | None = None


class ShareholderInfo(BaseModel):
    voting_requirements: dict[str, str] = {}
    record_date: str | None = None
    meeting_date: str | None = None
    support_agreements: bool = False
    lock_up_period: str | None = None
    dissent_rights: bool = False


class Exhibit(BaseModel):
    number: str
    description: str


class ExhibitIndex(BaseModel):
    exhibits: list[Exhibit] = []
    count: int = 0
    has_merger_agreement: bool = False
    has_opinion_letters: bool = False
    has_voting_agreements: bool = False


class DealAnalytics(BaseModel):
    deal_quality_score: int
    completion_probability: int
    break_up_fee_percentage: float | None = None
    estimated_timeline_months: int
    risk_score: int
    advisor_prestige_score: int


class ParsedS4Record(BaseModel):
    form_type: FormType = FormType.S4
    metadata: HeaderMetadata = HeaderMetadata()
    deal_structure: DealStructure = DealStructure()
    financial_terms: FinancialTerms = FinancialTerms()
    parties: Parties = Parties()
    advisors: Advisors = Advisors()
    regulatory: Regulatory = Regulatory()
    closing_conditions: ClosingConditions = ClosingConditions()
    synergies: Synergies = Synergies()
    risk_factors: RiskFactors = RiskFactors()
    termination_clauses: TerminationClauses = TerminationClauses()
    shareholder_info: ShareholderInfo = ShareholderInfo()
    exhibits: ExhibitIndex = ExhibitIndex()
    analytics: DealAnalytics | None = None


# ---------------------------------------------------------------------------
# Form 8-K
# ---------------------------------------------------------------------------

class FilingItem(BaseModel):
    item_number: str
    description: str
    full_text: str


class Item101(BaseModel):
    """Item 1.01 — Entry into a Material Definitive Agreement."""
    detected: bool = True
    agreement_types: list[str] = []
    parties: list[str] = []
    key_terms: list[str] = []
    effective_date: str | None = None
    material_clauses: list[str] = []


class Item201(BaseModel):
    """Item 2.01 — Completion of Acquisition or Disposition of Assets."""
    detected: bool = True
    transaction_type: str = "unknown"
    purchase_price: MoneyAmount | None = None
    asset_description: str | None = None
    counterparty: str | None = None
    closing_date: str | None = None
    source_of_funds: list[str] = []


class EarningsMetrics(BaseModel):
    revenue: float | None = None
    net_income: float | None = None
    eps: float | None = None


class ConferenceCall(BaseModel):
    has_call: bool = False
    date: str | None = None
    time: str | None = None


class Item202(BaseModel):
    """Item 2.02 — Results of Operations and Financial Condition."""
    detected: bool = True
    has_press_release: bool = False
    reporting_period: str | None = None
    earnings_metrics: EarningsMetrics = EarningsMetrics()
    conference_call: ConferenceCall = ConferenceCall()


class ExecutiveChange(BaseModel):
    action: str
    name: str
    position: str


class Item502(BaseModel):
    """Item 5.02 — Departure/Appointment of Directors or Officers."""
    detected: bool = True
    changes: list[ExecutiveChange] = []
    effective_dates: str | None = None


class Item701(BaseModel):
    """Item 7.01 — Regulation FD Disclosure."""
    detected: bool = True
    disclosure_topic: str | None = None
    has_presentation: bool = False


class Item801(BaseModel):
    """Item 8.01 — Other Events."""
    detected: bool = True
    event_description: str = ""


class Item901(BaseModel):
    """Item 9.01 — Financial Statements and Exhibits."""
    detected: bool = True
    has_pro_forma: bool = False
    exhibits_listed: list[str] = []


class Acquisition(BaseModel):
    target: str
    value: float
    currency: str = "USD"
    type: str = "acquisition"


class MaterialAgreement(BaseModel):
    type: str
    context: str


class LeadershipChange(BaseModel):
    action: str
    position: str
    name: str | None = None
    context: str = ""


class FinancialResults(BaseModel):
    has_earnings_release: bool = False
    period: str | None = None
    revenue: float | None = None
    net_income: float | None = None
    eps: float | None = None
    ebitda: float | None = None
    has_guidance: bool = False


class Signature(BaseModel):
    name: str
    title: str


class CriticalFlags(BaseModel):
    bankruptcy: bool = False                    # Item 1.03
    mine_safety: bool = False                   # Item 1.04
    default_on_senior_securities: bool = False  # Item 2.03
    triggering_events: bool = False             # Item 2.04
    delisting: bool = False                     # Item 3.01
    accountant_change: bool = False             # Item 4.01
    bylaw_changes: bool = False                 # Item 5.01
    material_weakness: bool = False
    restatement: bool = False
    going_concern: bool = False

    def count(self) -> int:
        return sum(1 for v in self.model_dump().values() if v)


class ItemBreakdown(BaseModel):
    corporate: list[str] = []
    financial: list[str] = []
    governance: list[str] = []
    regulatory: list[str] = []
    other: list[str] = []


class EventAnalytics(BaseModel):
    total_items: int
    criticality_score: int
    market_impact: RiskLevel
    item_breakdown: ItemBreakdown
    critical_flags_count: int


class ParsedForm8KRecord(BaseModel):
    form_type: FormType = FormType.FORM_8K
    metadata: HeaderMetadata = HeaderMetadata()
    items: list[FilingItem] = []
    event_date: str | None = None
    item101: Item101 | None = None
    item201: Item201 | None = None
    item202: Item202 | None = None
    item502: Item502 | None = None
    item701: Item701 | None = None
    item801: Item801 | None = None
    item901: Item901 | None = None
    acquisitions: list[Acquisition] = []
    material_agreements: list[MaterialAgreement] = []
    leadership_changes: list[LeadershipChange] = []
    financial_results: FinancialResults = FinancialResults()
    exhibits: list[Exhibit] = []
    signatures: list[Signature] = []
    critical_flags: CriticalFlags = CriticalFlags()
    analytics: EventAnalytics | None = None


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class ScoreBreakdownEntry(BaseModel):
    """One factor's share of a weighted score.

    ``value`` is None when the factor had no data; such entries carry
    ``effective_weight`` 0 and contribute nothing.
    """
    name: str
    value: int | None
    weight: float                 # nominal weight, a scorer's weights sum to 100
    effective_weight: float       # weight after renormalising over available factors
    contribution: int
    status: str                   # HIGH / MEDIUM / LOW / UNAVAILABLE


class ScoreResult(BaseModel):
    score: int
    breakdown: list[ScoreBreakdownEntry] = []
    unavailable: list[str] = []


# ---------------------------------------------------------------------------
# Filing feed (M&A analytics inputs)
# ---------------------------------------------------------------------------

class CompanyRef(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True,
    )

    cik: str
    company_name: str | None = None
    ticker: str | None = None


class FeedFiling(BaseModel):
    """One row of the filing feed (camelCase on the wire)."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True,
    )

    cik: str = ""
    company_name: str | None = None
    form_type: str | None = None
    accession_number: str | None = None
    filed_date: datetime | None = None
    summary: str = ""
    description: str = ""
    items: list[str] = []
    is_acquisition: bool = False
    is_leadership_change: bool = False

    @field_validator("items", mode="before")
    @classmethod
    def split_items(cls, v):
        # The bulk feed sends items either as a list or as "1.01,2.01"
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v or []

    @field_validator("filed_date")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return to_utc(v) if v is not None else None


class FilingFeed(BaseModel):
    filings: list[FeedFiling] = []
    count: int = 0


class MaterialEvents(BaseModel):
    categorized: dict[str, list[FeedFiling]] = {}
    filings: list[FeedFiling] = []


# ---------------------------------------------------------------------------
# M&A analytics outputs
# ---------------------------------------------------------------------------

class MAProbabilityResult(BaseModel):
    ticker: str
    company_name: str | None = None
    cik: str
    probability_score: int
    risk_level: ProbabilityLevel
    signals: dict[str, int | None]
    weights: dict[str, float]
    data_quality: RiskLevel
    breakdown: list[ScoreBreakdownEntry]
    errors: list[str] = []
    as_of: datetime


class TakeoverPremium(BaseModel):
    current_price: float
    estimated_premium: float
    target_price: float
    sector: str
    market_cap: float
    confidence_level: RiskLevel
    ev_sales: float
    ev_ebitda: float


class RegulatoryTimeline(BaseModel):
    total_months: int
    timelines: dict[str, int]
    estimated_close_date: date
    complexity: RiskLevel


class IntegrationRisk(BaseModel):
    overall_risk: int
    risks: dict[str, int | None]
    weights: dict[str, float]
    risk_level: RiskLevel
    breakdown: list[ScoreBreakdownEntry]


class BreakUpFeeAnalysis(BaseModel):
    has_break_up_fee: bool
    message: str | None = None
    break_up_fee: float | None = None
    deal_value: float | None = None
    fee_percentage: float | None = None
    assessment: str | None = None          # HIGH / STANDARD / LOW
    market_standard: str = "2-4%"
    implications: str | None = None


class DealComp(BaseModel):
    company_name: str | None = None
    accession_number: str | None = None
    filed_date: datetime | None = None
    deal_value: float
    deal_type: DealType = DealType.UNKNOWN
    exchange_ratio: float | None = None
    premium_offered: float | None = None
    synergies: float | None = None


class DealCompStats(BaseModel):
    avg_deal_value: float
    median_deal_value: float
    min_deal_value: float
    max_deal_value: float
    avg_premium: float
    median_premium: float
    total_deals: int


class DealCompsResult(BaseModel):
    sector: str
    period: str
    total_deals: int
    deals: list[DealComp] = []
    stats: DealCompStats | None = None
    sector_multiples: dict[str, float] = {}


class SerialAcquirer(BaseModel):
    company: str
    count: int
    known_for_sector: bool = False


class SerialAcquirersResult(BaseModel):
    sector: str
    period: str
    serial_acquirers: list[SerialAcquirer] = []
    total_acquisitions: int = 0


# ---------------------------------------------------------------------------
# Deal ranking (conversational layer)
# ---------------------------------------------------------------------------

class DealCandidate(BaseModel):
    """An already-fetched deal filing to rank.  Accepts feed rows as-is."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True,
    )

    company_name: str = "Unknown"
    cik: str = ""
    form_type: str = ""
    filed_date: datetime | None = None
    accession_number: str | None = None
    summary: str = ""
    description: str = ""
    items: list[str] = []
    document_length: int | None = None
    deal_value: float | None = None          # USD millions, narration only

    @field_validator("company_name", "form_type", "summary", "description", mode="before")
    @classmethod
    def none_to_default(cls, v, info):
        if v is None:
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("items", mode="before")
    @classmethod
    def split_items(cls, v):
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v or []

    @field_validator("filed_date")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        return to_utc(v) if v is not None else None


class RankedDeal(BaseModel):
    candidate: DealCandidate
    score: int
    confidence: str                 # VERY LIKELY / LIKELY / MODERATE / UNCERTAIN / UNLIKELY
    emoji: str
    factors: dict[str, int | None]
    breakdown: list[ScoreBreakdownEntry]


# ---------------------------------------------------------------------------
# Quote scoring
# ---------------------------------------------------------------------------

class Quote(BaseModel):
    """Real-time quote.  ``change_percent`` is in percent (2.5 = +2.5%)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    symbol: str = ""
    current: float | None = None
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = None
    change_percent: float = 0.0
    volume: float | None = None
    avg_volume: float | None = None


class CompanyProfile(BaseModel):
    """Company fundamentals; ratios in percent, ``market_cap`` in USD millions."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str | None = None
    sector: str | None = None
    market_cap: float | None = None
    roe: float | None = None
    profit_margin: float | None = None
    debt_to_equity: float | None = None
    beta: float | None = None


class QuoteScore(BaseModel):
    symbol: str
    company_name: str | None = None
    sector: str = "Unknown"
    overall_score: int
    rating: str
    technical_score: int
    momentum_score: int
    value_score: int
    sentiment_score: int
    quality_grade: str
    risk_rating: str
    market_cap_category: str
    data_quality: str
    breakdown: list[ScoreBreakdownEntry] = []
    insights: list[str] = []
