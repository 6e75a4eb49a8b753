"""Form 8-K (current report) parser.

``parse`` turns the raw text of an 8-K into a ``ParsedForm8KRecord``.
Item sub-parsers (1.01, 2.01, 2.02, 5.02, 7.01, 8.01, 9.01) run only inside
their own item's span (see ``section_segmenter``) and return None when the
item is absent.  Document-wide extractors (acquisitions, agreements,
leadership, financial results, exhibits, signatures, critical flags) scan
the whole text.

Criticality is an additive point table over critical flags and the
detected items; market impact is bucketed from that score.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from alphavault.config import get_config
from alphavault.errors import DocumentTooShort
from alphavault.extraction import (
    COMPANY_NAME,
    GAP,
    LONG_DATE,
    MONEY,
    ExtractionRule,
    apply_rules,
    compile_pattern,
    dedupe,
    extract_context,
    extract_metric,
    extract_money,
    extract_pattern,
    extract_window,
    matches,
    parse_money,
)
from alphavault.filings import check_length, failure, find_exhibits, parse_header
from alphavault.models import (
    Acquisition,
    ConferenceCall,
    CriticalFlags,
    EarningsMetrics,
    EventAnalytics,
    ExecutiveChange,
    FilingItem,
    FinancialResults,
    Item101,
    Item201,
    Item202,
    Item502,
    Item701,
    Item801,
    Item901,
    ItemBreakdown,
    LeadershipChange,
    MaterialAgreement,
    ParsedForm8KRecord,
    ParseFailure,
    RiskLevel,
    Signature,
)
from alphavault.scoring import PointRule, apply_point_rules, bucket
from alphavault.section_segmenter import (
    extract_item_excerpt,
    extract_item_section,
    find_item_headings,
    item_present,
)

log = logging.getLogger(__name__)

MAX_AGREEMENT_TYPES = 10
MAX_PARTIES = 5
MAX_EXECUTIVE_CHANGES = 10
MAX_EXHIBITS_LISTED = 20
MAX_ACQUISITIONS = 5
MAX_MATERIAL_AGREEMENTS = 10
MAX_LEADERSHIP_CHANGES = 10
EVENT_DESCRIPTION_LENGTH = 500
SIGNATURE_WINDOW = 2000

# Case-sensitive on purpose: capitalised "First Last"
_PERSON_NAME_RE = re.compile(r"([A-Z][a-z]+\s+[A-Z][a-z]+)")
_SIGNER_RE = re.compile(r"By:[ \t]*([A-Z][a-zA-Z \t\.]+)")

# ═══════════════════════════════════════════════════════════════════════════
#  Items
# ═══════════════════════════════════════════════════════════════════════════

EVENT_DATE_PATTERNS = (
    r"Event Date:?\s*(\d{1,2}/\d{1,2}/\d{4})",
    r"Event Date:?\s*(\d{4}-\d{2}-\d{2})",
    rf"Event Date:?\s*({LONG_DATE})",
    rf"Date of (?:Report|earliest event reported)[^:\n]*:\s*({LONG_DATE})",
)


def parse_items(text: str) -> list[FilingItem]:
    """Reported items, one per item number (first heading wins)."""
    items: dict[str, FilingItem] = {}
    for heading in find_item_headings(text):
        if heading.item_number in items:
            continue
        items[heading.item_number] = FilingItem(
            item_number=heading.item_number,
            description=heading.description,
            full_text=extract_item_excerpt(text, heading.item_number),
        )
    return list(items.values())


def extract_event_date(text: str) -> str | None:
    for pattern in EVENT_DATE_PATTERNS:
        found = extract_pattern(text, pattern)
        if found:
            return found
    return None


# ── Item 1.01 ─────────────────────────────────────────────────────────────

MATERIAL_CLAUSE_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"confidentiality", "Confidentiality"),
    (r"non-compete", "Non-compete"),
    (r"termination", "Termination provisions"),
    (r"indemnification", "Indemnification"),
)


def extract_agreement_types(section: str) -> list[str]:
    types: list[str] = []
    for m in compile_pattern(r"([a-z ]{1,100}agreement)").finditer(section):
        if len(types) >= MAX_AGREEMENT_TYPES:
            break
        kind = m.group(1).strip()
        if 5 < len(kind) < 100:
            types.append(kind)
    return dedupe(types)


def extract_parties(section: str) -> list[str]:
    parties: list[str] = []
    for m in compile_pattern(rf"(?:between|with|and)\s+({COMPANY_NAME})").finditer(section):
        parties.append(m.group(1).strip())
        if len(parties) >= MAX_PARTIES:
            break
    return dedupe(parties)


def extract_key_terms(section: str) -> list[str]:
    terms: list[str] = []
    years = extract_pattern(section, rf"term of{GAP}(\d+)\s*years?")
    if years:
        terms.append(f"Term: {years} years")
    m = compile_pattern(rf"amount of{GAP}{MONEY}").search(section)
    if m:
        terms.append(f"Amount: ${m.group(1)}{m.group(2)[0].upper()}")
    return terms


def parse_item101(text: str, cap: int) -> Item101 | None:
    """Item 1.01 — Entry into a Material Definitive Agreement."""
    if not item_present(text, "1.01"):
        return None
    section = extract_item_section(text, "1.01", cap)
    return Item101(
        agreement_types=extract_agreement_types(section),
        parties=extract_parties(section),
        key_terms=extract_key_terms(section),
        effective_date=extract_pattern(section, rf"effective (?:as of |on )?({LONG_DATE})"),
        material_clauses=[label for pattern, label in MATERIAL_CLAUSE_PATTERNS if matches(section, pattern)],
    )


# ── Item 2.01 ─────────────────────────────────────────────────────────────

SOURCE_OF_FUNDS_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"cash on hand", "Cash on hand"),
    (r"borrowing|credit facility", "Debt financing"),
    (r"equity offering", "Equity offering"),
)

ITEM201_RULES = (
    ExtractionRule("asset_description", (rf"(?:acquired|purchased|sold){GAP}([^.]{{50,200}})",)),
    ExtractionRule("counterparty", (rf"(?:from|to)\s+({COMPANY_NAME})",)),
    ExtractionRule("closing_date", (rf"closed on ({LONG_DATE})",)),
)


def transaction_type(section: str) -> str:
    if matches(section, r"\bacquisition\b"):
        return "acquisition"
    if matches(section, r"\bdisposition\b|\bsale\b"):
        return "disposition"
    return "unknown"


def parse_item201(text: str, cap: int) -> Item201 | None:
    """Item 2.01 — Completion of Acquisition or Disposition of Assets."""
    if not item_present(text, "2.01"):
        return None
    section = extract_item_section(text, "2.01", cap)
    return Item201(
        transaction_type=transaction_type(section),
        purchase_price=extract_money(
            section, rf"(?:purchase price|consideration) of (?:approximately )?{MONEY}"),
        source_of_funds=[label for pattern, label in SOURCE_OF_FUNDS_PATTERNS if matches(section, pattern)],
        **apply_rules(section, ITEM201_RULES),
    )


# ── Item 2.02 ─────────────────────────────────────────────────────────────

def reporting_period(text: str) -> str | None:
    """"quarter ended March 31, 2024", "year ended …" or "Q1 2024"."""
    for pattern in (
        rf"(?:quarter|period) ended ({LONG_DATE})",
        rf"(?:fiscal year|year) ended ({LONG_DATE})",
        r"(Q[1-4])\s+(\d{4})",
    ):
        m = compile_pattern(pattern).search(text)
        if m:
            return " ".join(g for g in m.groups() if g)
    return None


def parse_item202(text: str, cap: int) -> Item202 | None:
    """Item 2.02 — Results of Operations and Financial Condition."""
    if not item_present(text, "2.02"):
        return None
    section = extract_item_section(text, "2.02", cap)
    return Item202(
        has_press_release=matches(section, r"press release"),
        reporting_period=reporting_period(section),
        earnings_metrics=EarningsMetrics(
            revenue=extract_metric(section, "revenue|sales"),
            net_income=extract_metric(section, "net income|net earnings"),
            eps=extract_metric(section, "earnings per share|diluted EPS"),
        ),
        conference_call=ConferenceCall(
            has_call=matches(section, r"conference call|earnings call"),
            date=extract_pattern(section, rf"call{GAP}on ({LONG_DATE})"),
            time=extract_pattern(section, rf"call{GAP}at (\d{{1,2}}:\d{{2}}\s*[AP]M)"),
        ),
    )


# ── Item 5.02 ─────────────────────────────────────────────────────────────

def extract_executive_changes(section: str) -> list[ExecutiveChange]:
    changes: list[ExecutiveChange] = []
    for m in compile_pattern(r"(appointed|elected|resigned|retired|departed)").finditer(section):
        if len(changes) >= MAX_EXECUTIVE_CHANGES:
            break
        context = extract_context(section, m.start(), 200)
        name = _PERSON_NAME_RE.search(context)
        position = extract_pattern(context, r"(CEO|CFO|COO|CTO|President|Director)")
        if name and position:
            changes.append(ExecutiveChange(action=m.group(1), name=name.group(1), position=position))
    return changes


def parse_item502(text: str, cap: int) -> Item502 | None:
    """Item 5.02 — Departure of Directors or Certain Officers; Election of Directors."""
    if not item_present(text, "5.02"):
        return None
    section = extract_item_section(text, "5.02", cap)
    return Item502(
        changes=extract_executive_changes(section),
        effective_dates=extract_pattern(section, rf"effective\s+({LONG_DATE})"),
    )


# ── Items 7.01 / 8.01 / 9.01 ──────────────────────────────────────────────

def parse_item701(text: str, cap: int) -> Item701 | None:
    """Item 7.01 — Regulation FD Disclosure."""
    if not item_present(text, "7.01"):
        return None
    section = extract_item_section(text, "7.01", cap)
    return Item701(
        disclosure_topic=extract_pattern(section, r"(?:regarding|concerning|relating to)\s+([^.]{20,100})"),
        has_presentation=matches(section, r"presentation|investor|analyst"),
    )


def parse_item801(text: str, cap: int) -> Item801 | None:
    """Item 8.01 — Other Events."""
    if not item_present(text, "8.01"):
        return None
    section = extract_item_section(text, "8.01", cap)
    return Item801(event_description=section[:EVENT_DESCRIPTION_LENGTH])


def parse_item901(text: str, cap: int) -> Item901 | None:
    """Item 9.01 — Financial Statements and Exhibits."""
    if not item_present(text, "9.01"):
        return None
    section = extract_item_section(text, "9.01", cap)
    listed = [m.group(1) for m in compile_pattern(r"Exhibit\s+(\d+\.?\d*)").finditer(section)]
    return Item901(
        has_pro_forma=matches(section, r"pro forma"),
        exhibits_listed=listed[:MAX_EXHIBITS_LISTED],
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Document-wide extractors
# ═══════════════════════════════════════════════════════════════════════════

ACQUISITION_PATTERN = rf"acquired{GAP}({COMPANY_NAME})\s+for\b{GAP}{MONEY}"

AGREEMENT_PATTERNS = (
    rf"entered into{GAP}([a-z ]{{1,100}}agreement)",
    rf"executed{GAP}([a-z ]{{1,100}}agreement)",
    rf"signed{GAP}([a-z ]{{1,100}}agreement)",
)

LEADERSHIP_ACTION_PATTERN = r"(appointed|elected|resigned|retired|departed|named|promoted)"
LEADERSHIP_POSITION_PATTERN = (
    r"(CEO|CFO|COO|CTO|President|Director|Chairman|Vice President|Secretary|Treasurer|Chief.*Officer)"
)


def parse_acquisitions(text: str) -> list[Acquisition]:
    acquisitions: list[Acquisition] = []
    for m in compile_pattern(ACQUISITION_PATTERN).finditer(text):
        value = parse_money(m.group(2), m.group(3))
        if value is None:
            continue
        acquisitions.append(Acquisition(target=m.group(1).strip(), value=value))
        if len(acquisitions) >= MAX_ACQUISITIONS:
            break
    return acquisitions


def parse_material_agreements(text: str) -> list[MaterialAgreement]:
    """Agreements "entered into / executed / signed"; one entry per type, latest context wins."""
    found: list[MaterialAgreement] = []
    for pattern in AGREEMENT_PATTERNS:
        for m in compile_pattern(pattern).finditer(text):
            if len(found) >= MAX_MATERIAL_AGREEMENTS:
                break
            kind = m.group(1).strip()
            if 5 < len(kind) < 100:
                found.append(MaterialAgreement(type=kind, context=extract_context(text, m.start(), 200)))
    by_type: dict[str, MaterialAgreement] = {}
    for agreement in found:
        by_type[agreement.type] = agreement
    return list(by_type.values())


def parse_leadership_changes(text: str) -> list[LeadershipChange]:
    changes: list[LeadershipChange] = []
    for m in compile_pattern(LEADERSHIP_ACTION_PATTERN).finditer(text):
        context = extract_context(text, m.start(), 300)
        position = extract_pattern(context, LEADERSHIP_POSITION_PATTERN)
        if not position:
            continue
        name = _PERSON_NAME_RE.search(context)
        changes.append(LeadershipChange(
            action=m.group(1),
            position=position,
            name=name.group(1) if name else None,
            context=context[:200],
        ))
        if len(changes) >= MAX_LEADERSHIP_CHANGES:
            break
    return changes


def parse_financial_results(text: str) -> FinancialResults:
    return FinancialResults(
        has_earnings_release=matches(text, r"earnings|financial results|quarterly results"),
        period=reporting_period(text),
        revenue=extract_metric(text, "revenue"),
        net_income=extract_metric(text, "net income"),
        eps=extract_metric(text, "earnings per share|EPS"),
        ebitda=extract_metric(text, "EBITDA"),
        has_guidance=matches(text, r"guidance|outlook|forecast"),
    )


def parse_signatures(text: str) -> list[Signature]:
    """Signer names paired positionally with "Title:" / "Its:" lines."""
    section = extract_window(text, "SIGNATURE", SIGNATURE_WINDOW)
    names = [m.group(1).strip() for m in _SIGNER_RE.finditer(section)]
    titles = [m.group(1).strip() for m in compile_pattern(r"(?:Title|Its):\s*([^\n]+)").finditer(section)]
    return [Signature(name=name, title=title) for name, title in zip(names, titles)]


# ═══════════════════════════════════════════════════════════════════════════
#  Critical flags & analytics
# ═══════════════════════════════════════════════════════════════════════════

CRITICAL_FLAG_PATTERNS: dict[str, str] = {
    "bankruptcy":                   r"Item\s+1\.03\b",
    "mine_safety":                  r"Item\s+1\.04\b",
    "default_on_senior_securities": r"Item\s+2\.03\b",
    "triggering_events":            r"Item\s+2\.04\b",
    "delisting":                    r"Item\s+3\.01\b",
    "accountant_change":            r"Item\s+4\.01\b",
    "bylaw_changes":                r"Item\s+5\.01\b",
    "material_weakness":            r"material weakness",
    "restatement":                  r"restatement|restated",
    "going_concern":                r"going concern",
}


def parse_critical_flags(text: str) -> CriticalFlags:
    return CriticalFlags(**{name: matches(text, pattern) for name, pattern in CRITICAL_FLAG_PATTERNS.items()})


def _flag(name: str) -> Callable[[ParsedForm8KRecord], bool]:
    return lambda r: getattr(r.critical_flags, name)


CRITICALITY_RULES: tuple[PointRule, ...] = (
    PointRule("bankruptcy", 100, _flag("bankruptcy")),
    PointRule("delisting", 90, _flag("delisting")),
    PointRule("default_on_senior_securities", 80, _flag("default_on_senior_securities")),
    PointRule("going_concern", 85, _flag("going_concern")),
    PointRule("material_weakness", 70, _flag("material_weakness")),
    PointRule("restatement", 60, _flag("restatement")),
    PointRule("accountant_change", 40, _flag("accountant_change")),
    PointRule("item101", 30, lambda r: r.item101 is not None),
    PointRule("item201", 50, lambda r: r.item201 is not None),
    PointRule("item502", 40, lambda r: r.item502 is not None),
)

MARKET_IMPACT_BANDS: tuple[tuple[int, RiskLevel], ...] = ((80, RiskLevel.HIGH), (40, RiskLevel.MEDIUM))

ITEM_CATEGORIES: dict[str, frozenset[str]] = {
    "corporate":  frozenset({"1.01", "1.02", "1.03", "1.04"}),
    "financial":  frozenset({"2.01", "2.02", "2.03", "2.04", "2.05", "2.06"}),
    "governance": frozenset({"5.01", "5.02", "5.03", "5.04", "5.05", "5.06", "5.07", "5.08"}),
    "regulatory": frozenset({"3.01", "3.02", "3.03", "4.01", "4.02"}),
}


def calculate_criticality_score(record: ParsedForm8KRecord) -> int:
    return apply_point_rules(record, 0, CRITICALITY_RULES)


def assess_market_impact(criticality_score: int) -> RiskLevel:
    return bucket(criticality_score, MARKET_IMPACT_BANDS, RiskLevel.LOW)


def categorize_items(items: list[FilingItem]) -> ItemBreakdown:
    breakdown = ItemBreakdown()
    for item in items:
        category = next(
            (name for name, numbers in ITEM_CATEGORIES.items() if item.item_number in numbers),
            "other",
        )
        getattr(breakdown, category).append(item.item_number)
    return breakdown


def calculate_analytics(record: ParsedForm8KRecord) -> EventAnalytics:
    score = calculate_criticality_score(record)
    return EventAnalytics(
        total_items=len(record.items),
        criticality_score=score,
        market_impact=assess_market_impact(score),
        item_breakdown=categorize_items(record.items),
        critical_flags_count=record.critical_flags.count(),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Entry point
# ═══════════════════════════════════════════════════════════════════════════

def parse(
    raw_text: str,
    min_length: int | None = None,
    section_cap: int | None = None,
) -> ParsedForm8KRecord | ParseFailure:
    """Parse an 8-K filing.  Never raises; failures come back as ``ParseFailure``."""
    text = raw_text or ""
    cfg = get_config()
    minimum = min_length if min_length is not None else cfg.min_8k_length
    cap = section_cap if section_cap is not None else cfg.item_section_cap
    try:
        check_length(text, minimum, "8-K")
    except DocumentTooShort as exc:
        log.warning("8-K parse rejected: %s", exc)
        return failure(exc, text)

    log.info("Parsing 8-K (%d chars)", len(text))
    try:
        record = ParsedForm8KRecord(
            metadata=parse_header(text, include_ticker=True),
            items=parse_items(text),
            event_date=extract_event_date(text),
            item101=parse_item101(text, cap),
            item201=parse_item201(text, cap),
            item202=parse_item202(text, cap),
            item502=parse_item502(text, cap),
            item701=parse_item701(text, cap),
            item801=parse_item801(text, cap),
            item901=parse_item901(text, cap),
            acquisitions=parse_acquisitions(text),
            material_agreements=parse_material_agreements(text),
            leadership_changes=parse_leadership_changes(text),
            financial_results=parse_financial_results(text),
            exhibits=find_exhibits(text),
            signatures=parse_signatures(text),
            critical_flags=parse_critical_flags(text),
        )
        record.analytics = calculate_analytics(record)
    except Exception as exc:
        log.exception("8-K parse failed")
        return failure(exc, text)

    log.info(
        "Parsed 8-K: %d items, criticality %d (%s)",
        len(record.items), record.analytics.criticality_score, record.analytics.market_impact.value,
    )
    return record
