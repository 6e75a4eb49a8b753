"""Form S-4 (business-combination registration statement) parser.

``parse`` turns the raw text of an S-4 into a ``ParsedS4Record``:

  metadata            SEC header block
  deal_structure      deal type, payment structure, parties, key dates
  financial_terms     deal value, break-up fee, exchange ratio, financing
  parties             acquirer / target details, subsidiaries
  advisors            law firms, banks, auditors (reference lists)
  regulatory          FTC / DOJ / SEC / CFIUS / EC / shareholder approvals
  closing_conditions  shareholder, regulatory, MAC and financing conditions
  synergies           cost / revenue synergies and their sources
  risk_factors        ten risk categories from the RISK FACTORS section
  termination_clauses fees, rights, triggering events, outside date
  shareholder_info    voting thresholds, record / meeting dates
  exhibits            exhibit index
  analytics           deal scores (``deal_scoring``)

Every sub-extractor scans the full text and tolerates absent data.
Documents shorter than ``min_s4_length`` come back as a ``ParseFailure``.
"""

from __future__ import annotations

import logging
import re

from alphavault.config import get_config
from alphavault.deal_scoring import compute_deal_analytics
from alphavault.errors import DocumentTooShort
from alphavault.extraction import (
    COMPANY_NAME,
    GAP,
    LONG_DATE,
    MONEY,
    SLASH_DATE,
    ExtractionRule,
    apply_rules,
    compile_pattern,
    dedupe,
    extract_all_patterns,
    extract_pattern,
    extract_window,
    find_names,
    matches,
)
from alphavault.filings import TICKER_PATTERN, check_length, failure, find_exhibits, parse_header
from alphavault.models import (
    Advisors,
    ClosingCondition,
    ClosingConditions,
    DealStructure,
    DealType,
    ExhibitIndex,
    Financing,
    FinancialTerms,
    Parties,
    ParsedS4Record,
    ParseFailure,
    PartyInfo,
    Regulatory,
    RegulatoryApproval,
    RiskFactors,
    RiskLevel,
    ShareholderInfo,
    Synergies,
    TerminationClauses,
    TerminationRights,
)
from alphavault.reference_data import ReferenceData, get_reference_data

log = logging.getLogger(__name__)

MAX_SUBSIDIARIES = 10
MAX_RISK_EXCERPTS = 5
RISK_WINDOW = 5000
RATIONALE_WINDOW = 1000
RATIONALE_LENGTH = 500

ANY_DATE = rf"({SLASH_DATE}|{LONG_DATE})"

# ═══════════════════════════════════════════════════════════════════════════
#  Deal structure
# ═══════════════════════════════════════════════════════════════════════════

# Most specific phrase first: "reverse merger" also contains "merger"
DEAL_TYPE_PATTERNS: tuple[tuple[DealType, str], ...] = (
    (DealType.REVERSE_MERGER,       r"\breverse merger\b"),
    (DealType.TENDER_OFFER,         r"\btender offer\b"),
    (DealType.BUSINESS_COMBINATION, r"\bbusiness combination\b"),
    (DealType.MERGER,               r"\bmerger\b"),
    (DealType.ACQUISITION,          r"\bacquisition\b"),
)

PAYMENT_PATTERNS: tuple[tuple[str, str], ...] = (
    ("cash",  r"\bcash\b"),
    ("stock", r"\bstock\b|\bshares\b"),
    ("mixed", r"\bmixed\b|\bcombination of cash and stock\b"),
)

ACQUIRER_PATTERN = rf"acquirer[:\s]+({COMPANY_NAME})"
TARGET_PATTERN = rf"target[:\s]+({COMPANY_NAME})"

DEAL_STRUCTURE_RULES = (
    ExtractionRule("acquirer_name", (ACQUIRER_PATTERN,)),
    ExtractionRule("target_name", (TARGET_PATTERN,)),
    ExtractionRule("surviving_entity", (r"surviving (?:entity|corporation)[:\s]+([A-Z][a-zA-Z\s&,.]+)",)),
    ExtractionRule("effective_date", (rf"effective date[:\s]+({LONG_DATE})",)),
    ExtractionRule("agreement_date", (rf"(?:merger agreement|agreement and plan)[^.]*dated[:\s]+({LONG_DATE})",)),
)


def detect_deal_type(text: str) -> DealType:
    for deal_type, pattern in DEAL_TYPE_PATTERNS:
        if matches(text, pattern):
            return deal_type
    return DealType.UNKNOWN


def parse_deal_structure(text: str) -> DealStructure:
    return DealStructure(
        deal_type=detect_deal_type(text),
        payment_structure=[name for name, pattern in PAYMENT_PATTERNS if matches(text, pattern)],
        **apply_rules(text, DEAL_STRUCTURE_RULES),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Financial terms
# ═══════════════════════════════════════════════════════════════════════════

BREAK_UP_FEE_PATTERN = rf"(?:termination|break.?up) fee of {MONEY}"

FINANCIAL_RULES = (
    ExtractionRule("deal_value", (
        rf"(?:aggregate|total|transaction|deal) (?:consideration|value|price) of (?:approximately )?{MONEY}",
        rf"purchase price of (?:approximately )?{MONEY}",
        rf"{MONEY} (?:transaction|deal)",
    ), "money"),
    ExtractionRule("break_up_fee", (BREAK_UP_FEE_PATTERN,), "money"),
    ExtractionRule("exchange_ratio", (r"exchange ratio of ([\d\.]+)",), "number"),
    ExtractionRule("premium_offered", (r"premium of ([\d\.]+)%",), "percent"),
    ExtractionRule("premium_basis", (rf"premium{GAP}based on{GAP}([^\n\.]+)",)),
    ExtractionRule("price_per_share", (r"\$?([\d\.]+)\s+per share",), "number"),
    ExtractionRule("enterprise_value", (rf"enterprise value of (?:approximately )?{MONEY}",), "money"),
    ExtractionRule("equity_value", (rf"equity value of (?:approximately )?{MONEY}",), "money"),
)

FINANCING_RULES = (
    ExtractionRule("debt_financing", (r"debt financing|term loan|credit facility",), "flag"),
    ExtractionRule("equity_financing", (r"equity financing|stock issuance",), "flag"),
    ExtractionRule("cash_on_hand", (r"cash on hand|existing cash",), "flag"),
    ExtractionRule("committed", (r"committed financing|financing commitment",), "flag"),
    ExtractionRule("financing_amount", (rf"financing{GAP}\$?([\d,\.]+)\s*(?:million|billion)",)),
)


def fee_percentage(fee: float | None, deal_value: float | None) -> float | None:
    if fee is None or not deal_value:
        return None
    return round(fee / deal_value * 100, 2)


def parse_financial_terms(text: str) -> FinancialTerms:
    fields = apply_rules(text, FINANCIAL_RULES)
    return FinancialTerms(
        break_up_fee_percentage=fee_percentage(fields["break_up_fee"], fields["deal_value"]),
        financing=Financing(**apply_rules(text, FINANCING_RULES)),
        **fields,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Parties & advisors
# ═══════════════════════════════════════════════════════════════════════════

PARTY_DETAIL_RULES = (
    ExtractionRule("jurisdiction", (r"incorporated (?:in|under the laws of)\s+([A-Za-z\s]+)",)),
    ExtractionRule("website", (r"(https?://[^\s]+)",)),
)

BUSINESS_DESCRIPTION_PATTERN = r"(?:target|company) (?:is|engages in)[^.]{0,200}([^.]+\.)"
SUBSIDIARY_PATTERN = rf"subsidiary{GAP}({COMPANY_NAME})"


def parse_subsidiaries(text: str) -> list[str]:
    found: list[str] = []
    for m in compile_pattern(SUBSIDIARY_PATTERN).finditer(text):
        found.append(m.group(1).strip())
        if len(found) >= MAX_SUBSIDIARIES:
            break
    return dedupe(found)


def parse_parties(text: str) -> Parties:
    tickers = extract_all_patterns(text, TICKER_PATTERN)
    return Parties(
        acquirer=PartyInfo(
            name=extract_pattern(text, ACQUIRER_PATTERN),
            ticker=extract_pattern(text, TICKER_PATTERN),
            **apply_rules(text, PARTY_DETAIL_RULES),
        ),
        target=PartyInfo(
            name=extract_pattern(text, TARGET_PATTERN),
            ticker=tickers[1] if len(tickers) > 1 else None,
            business_description=extract_pattern(text, BUSINESS_DESCRIPTION_PATTERN),
        ),
        subsidiaries=parse_subsidiaries(text),
    )


def _nth(values: list[str], index: int) -> str | None:
    return values[index] if len(values) > index else None


def parse_advisors(text: str, reference: ReferenceData) -> Advisors:
    """Advisors named in the filing; first match is acquirer-side, second target-side."""
    counsel = find_names(text, reference.law_firms)
    banks = find_names(text, reference.investment_banks)
    return Advisors(
        acquirer_legal_counsel=_nth(counsel, 0),
        target_legal_counsel=_nth(counsel, 1),
        all_legal_counsel=counsel,
        acquirer_financial_advisor=_nth(banks, 0),
        target_financial_advisor=_nth(banks, 1),
        all_financial_advisors=banks,
        auditors=find_names(text, reference.auditors),
        proxy_solicitor=extract_pattern(text, r"proxy solicitor[:\s]+([A-Z][a-zA-Z\s&,.]+)"),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Regulatory
# ═══════════════════════════════════════════════════════════════════════════

APPROVAL_PATTERNS: tuple[tuple[str, str, str], ...] = (
    ("FTC", r"\bFTC\b|\bFederal Trade Commission\b", "Federal Trade Commission antitrust review"),
    ("DOJ", r"\bDOJ\b|\bDepartment of Justice\b", "Department of Justice antitrust review"),
    ("SEC", r"\bSEC\b|\bSecurities and Exchange Commission\b", "SEC registration and approval"),
    ("CFIUS", r"\bCFIUS\b|\bCommittee on Foreign Investment\b", "Foreign investment security review"),
    ("EC", r"\bEuropean Commission\b|\bEC\b.*\bantitrust\b", "European Commission competition review"),
    ("Shareholders", r"\bshareholder approval\b|\bstockholders.*vote\b", "Shareholder vote approval"),
)

REGULATORY_CONDITION_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"HSR.*approval", "HSR Act clearance"),
    (r"antitrust.*approval", "Antitrust approval"),
    (r"foreign.*approval", "Foreign regulatory approval"),
    (r"banking.*approval", "Banking regulatory approval"),
)

REGULATORY_RULES = (
    ExtractionRule("hsr_required", (r"Hart-Scott-Rodino|HSR Act",), "flag"),
    ExtractionRule("hsr_filing_date", (rf"HSR filing[^.]*?({SLASH_DATE})",)),
    ExtractionRule("foreign_filings_required", (r"foreign.*regulatory.*filing",), "flag"),
    ExtractionRule("antitrust_concerns", (r"antitrust.*concern|regulatory.*challenge",), "flag"),
)


def parse_regulatory(text: str) -> Regulatory:
    approvals = [
        RegulatoryApproval(authority=authority, required=True, description=description)
        for authority, pattern, description in APPROVAL_PATTERNS
        if matches(text, pattern)
    ]
    return Regulatory(
        approvals_required=approvals,
        regulatory_conditions=[label for pattern, label in REGULATORY_CONDITION_PATTERNS if matches(text, pattern)],
        **apply_rules(text, REGULATORY_RULES),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Closing conditions
# ═══════════════════════════════════════════════════════════════════════════

CLOSING_CONDITION_PATTERNS: tuple[tuple[str, str, str], ...] = (
    ("shareholder_approval", r"shareholder approval", "Approval by shareholders of both companies"),
    ("regulatory_approval", r"regulatory approval", "Receipt of all required regulatory approvals"),
    ("mac_clause", r"no material adverse (?:change|effect)", "No Material Adverse Change (MAC)"),
    ("financing", r"financing condition", "Availability of financing"),
)


def parse_closing_conditions(text: str) -> ClosingConditions:
    conditions = [
        ClosingCondition(type=kind, description=description, satisfied=False)
        for kind, pattern, description in CLOSING_CONDITION_PATTERNS
        if matches(text, pattern)
    ]
    return ClosingConditions(
        conditions=conditions,
        total_conditions=len(conditions),
        walk_away_rights=matches(text, r"walk.away|termination right"),
        waiver_provisions=matches(text, r"waive.*condition|waiver"),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Synergies
# ═══════════════════════════════════════════════════════════════════════════

SYNERGY_RULES = (
    ExtractionRule("total_synergies", (rf"synergies of{GAP}{MONEY}",), "money"),
    ExtractionRule("cost_synergies", (rf"cost savings of{GAP}{MONEY}",), "money"),
    ExtractionRule("revenue_synergies", (rf"revenue (?:synergies|opportunities) of{GAP}{MONEY}",), "money"),
    ExtractionRule("synergy_timeframe", (r"synergies.*(?:within|over)\s+(\d+)\s+years?",)),
)

SYNERGY_SOURCE_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"operational.*synerg", "Operational efficiencies"),
    (r"cost.*reduction|cost.*saving", "Cost reductions"),
    (r"revenue.*synerg", "Revenue enhancements"),
    (r"technology.*synerg", "Technology synergies"),
    (r"scale.*econom", "Economies of scale"),
)


def parse_synergies(text: str) -> Synergies:
    rationale = extract_window(text, r"strategic rationale|reasons for", RATIONALE_WINDOW)
    return Synergies(
        synergy_sources=[label for pattern, label in SYNERGY_SOURCE_PATTERNS if matches(text, pattern)],
        strategic_rationale=rationale[:RATIONALE_LENGTH],
        **apply_rules(text, SYNERGY_RULES),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Risk factors
# ═══════════════════════════════════════════════════════════════════════════

RISK_PATTERNS: tuple[tuple[str, str], ...] = (
    ("integration", r"integration.*risk"),
    ("regulatory", r"regulatory.*(?:risk|uncertainty)"),
    ("financial", r"financial.*risk"),
    ("operational", r"operational.*risk"),
    ("market", r"market.*(?:risk|condition)"),
    ("competition", r"competitive.*risk"),
    ("retention", r"employee.*retention|key personnel"),
    ("litigation", r"litigation.*risk"),
    ("technology", r"technology.*risk|cyber"),
    ("debt", r"debt.*level|leverage"),
)

RISK_LEVEL_BANDS: tuple[tuple[int, RiskLevel], ...] = ((7, RiskLevel.HIGH), (4, RiskLevel.MEDIUM))

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]")
_RISK_WORD_RE = re.compile(r"\brisk\b", re.IGNORECASE)


def risk_level(count: int) -> RiskLevel:
    for floor, level in RISK_LEVEL_BANDS:
        if count > floor:
            return level
    return RiskLevel.LOW


def risk_excerpts(section: str) -> list[str]:
    excerpts: list[str] = []
    for sentence in _SENTENCE_SPLIT_RE.split(section):
        if len(sentence) > 50 and _RISK_WORD_RE.search(sentence):
            excerpts.append(sentence.strip())
            if len(excerpts) >= MAX_RISK_EXCERPTS:
                break
    return excerpts


def parse_risk_factors(text: str) -> RiskFactors:
    section = extract_window(text, "RISK FACTORS", RISK_WINDOW)
    risks = {name: matches(section, pattern) for name, pattern in RISK_PATTERNS}
    count = sum(risks.values())
    return RiskFactors(
        risks=risks,
        risk_count=count,
        risk_level=risk_level(count),
        material_adverse_effect=matches(text, r"material adverse (?:effect|change)"),
        risk_excerpts=risk_excerpts(section),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Termination clauses
# ═══════════════════════════════════════════════════════════════════════════

TRIGGERING_EVENT_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"superior proposal", "Superior proposal received"),
    (r"material breach", "Material breach of agreement"),
    (r"regulatory.*denial", "Regulatory denial"),
    (r"shareholder.*fail", "Failure to obtain shareholder approval"),
    (r"outside date", "Outside date reached"),
)

TERMINATION_RULES = (
    ExtractionRule("has_break_up_fee", (r"termination fee|break.?up fee",), "flag"),
    ExtractionRule("break_up_fee_amount", (BREAK_UP_FEE_PATTERN,), "money"),
    ExtractionRule("has_reverse_break_up_fee", (r"reverse.*termination fee",), "flag"),
    ExtractionRule("reverse_break_up_fee_amount", (rf"reverse.*(?:termination|break.?up) fee of {MONEY}",), "money"),
    ExtractionRule("outside_date", (rf"outside date{GAP}{ANY_DATE}",)),
)


def parse_termination_clauses(text: str) -> TerminationClauses:
    return TerminationClauses(
        termination_rights=TerminationRights(
            by_acquirer=matches(text, r"acquirer.*terminate"),
            by_target=matches(text, r"target.*terminate"),
            mutual=matches(text, r"either party.*terminate"),
        ),
        triggering_events=[label for pattern, label in TRIGGERING_EVENT_PATTERNS if matches(text, pattern)],
        **apply_rules(text, TERMINATION_RULES),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Shareholder information
# ═══════════════════════════════════════════════════════════════════════════

SHAREHOLDER_RULES = (
    ExtractionRule("record_date", (rf"record date{GAP}{ANY_DATE}",)),
    ExtractionRule("meeting_date", (rf"(?:special )?meeting{GAP}{ANY_DATE}",)),
    ExtractionRule("support_agreements", (r"support agreement|voting agreement",), "flag"),
    ExtractionRule("lock_up_period", (rf"lock.?up{GAP}(\d+)\s*(?:days|months)",)),
    ExtractionRule("dissent_rights", (r"dissent.*right|appraisal.*right",), "flag"),
)


def voting_requirement(text: str, party: str) -> str:
    threshold = extract_pattern(text, rf"{party}{GAP}(\d+)%{GAP}(?:vote|approval)")
    return f"{threshold}%" if threshold else "Majority"


def parse_shareholder_info(text: str) -> ShareholderInfo:
    return ShareholderInfo(
        voting_requirements={party: voting_requirement(text, party) for party in ("acquirer", "target")},
        **apply_rules(text, SHAREHOLDER_RULES),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Exhibits
# ═══════════════════════════════════════════════════════════════════════════

def parse_exhibits(text: str) -> ExhibitIndex:
    exhibits = find_exhibits(text)
    return ExhibitIndex(
        exhibits=exhibits,
        count=len(exhibits),
        has_merger_agreement=matches(text, r"merger agreement"),
        has_opinion_letters=matches(text, r"fairness opinion|opinion.*financial advisor"),
        has_voting_agreements=matches(text, r"voting agreement|support agreement"),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Entry point
# ═══════════════════════════════════════════════════════════════════════════

def parse(
    raw_text: str,
    reference: ReferenceData | None = None,
    min_length: int | None = None,
) -> ParsedS4Record | ParseFailure:
    """Parse an S-4 filing.  Never raises; failures come back as ``ParseFailure``."""
    text = raw_text or ""
    minimum = min_length if min_length is not None else get_config().min_s4_length
    try:
        check_length(text, minimum, "S-4")
    except DocumentTooShort as exc:
        log.warning("S-4 parse rejected: %s", exc)
        return failure(exc, text)

    ref = reference or get_reference_data()
    log.info("Parsing S-4 (%d chars)", len(text))
    try:
        record = ParsedS4Record(
            metadata=parse_header(text, include_ticker=True),
            deal_structure=parse_deal_structure(text),
            financial_terms=parse_financial_terms(text),
            parties=parse_parties(text),
            advisors=parse_advisors(text, ref),
            regulatory=parse_regulatory(text),
            closing_conditions=parse_closing_conditions(text),
            synergies=parse_synergies(text),
            risk_factors=parse_risk_factors(text),
            termination_clauses=parse_termination_clauses(text),
            shareholder_info=parse_shareholder_info(text),
            exhibits=parse_exhibits(text),
        )
        record.analytics = compute_deal_analytics(record, ref)
    except Exception as exc:
        log.exception("S-4 parse failed")
        return failure(exc, text)

    log.info(
        "Parsed S-4: %s / %s, deal value %s",
        record.deal_structure.acquirer_name, record.deal_structure.target_name,
        record.financial_terms.deal_value,
    )
    return record
