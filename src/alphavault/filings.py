"""Filing-level helpers shared by the form parsers.

  - SEC header block (ACCESSION NUMBER, COMPANY CONFORMED NAME, …)
  - form-type detection
  - length precondition + failure records
  - ``parse_filing`` — dispatch a raw filing to the S-4 or 8-K parser
"""

from __future__ import annotations

import logging
import re

from alphavault.errors import DocumentTooShort
from alphavault.extraction import ExtractionRule, apply_rules, compile_pattern, extract_pattern
from alphavault.models import (
    ConformedInfo,
    Exhibit,
    FilerInfo,
    FormType,
    HeaderMetadata,
    ParsedForm8KRecord,
    ParsedS4Record,
    ParseFailure,
    RawFiling,
)
from alphavault.reference_data import ReferenceData

log = logging.getLogger(__name__)

RAW_EXCERPT_LENGTH = 5000

TICKER_PATTERN = r"\((?:NYSE|NASDAQ|AMEX):\s*([A-Z]{1,5})\)"

# ═══════════════════════════════════════════════════════════════════════════
#  SEC header
# ═══════════════════════════════════════════════════════════════════════════

CONFORMED_RULES = (
    ExtractionRule("submission_type", (r"CONFORMED SUBMISSION TYPE:\s*([^\n]+)",)),
    ExtractionRule("public_document_count", (r"PUBLIC DOCUMENT COUNT:\s*(\d+)",)),
    ExtractionRule("period_of_report", (r"CONFORMED PERIOD OF REPORT:\s*(\d{8})",)),
    ExtractionRule("filed_as_of_date", (r"FILED AS OF DATE:\s*(\d{8})",)),
    ExtractionRule("date_as_of_change", (r"DATE AS OF CHANGE:\s*(\d{8})",)),
)

FILER_RULES = (
    ExtractionRule("company_name", (r"COMPANY CONFORMED NAME:\s*([^\n]+)",)),
    ExtractionRule("cik", (r"CENTRAL INDEX KEY:\s*(\d+)",)),
    ExtractionRule("irs_number", (r"IRS NUMBER:\s*([\d-]+)",)),
    ExtractionRule("state_of_incorporation", (r"STATE OF INCORPORATION:\s*([^\n]+)",)),
    ExtractionRule("fiscal_year_end", (r"FISCAL YEAR END:\s*(\d+)",)),
)


def parse_header(text: str, include_ticker: bool = False) -> HeaderMetadata:
    """Parse the EDGAR header block that precedes the document body."""
    return HeaderMetadata(
        accession_number=extract_pattern(text, r"ACCESSION NUMBER:\s*([\d-]+)"),
        conformed=ConformedInfo(**apply_rules(text, CONFORMED_RULES)),
        filer=FilerInfo(**apply_rules(text, FILER_RULES)),
        trading_symbol=extract_pattern(text, TICKER_PATTERN) if include_ticker else None,
    )


EXHIBIT_PATTERN = r"EXHIBIT\s+(\d+\.?\d*)\s+[—\-]\s*([^\n]+)"


def find_exhibits(text: str) -> list[Exhibit]:
    """"Exhibit 99.1 - Press release" lines in document order."""
    if not text:
        return []
    return [
        Exhibit(number=m.group(1), description=m.group(2).strip())
        for m in compile_pattern(EXHIBIT_PATTERN).finditer(text)
    ]


# ═══════════════════════════════════════════════════════════════════════════
#  Form type detection
# ═══════════════════════════════════════════════════════════════════════════

_SUBMISSION_TYPE_RE = re.compile(r"CONFORMED SUBMISSION TYPE:\s*([^\n]+)", re.IGNORECASE)
_FORM_BANNER_RE = re.compile(r"\bFORM\s+(S-4|8-K)\b", re.IGNORECASE)


def _form_from_label(label: str) -> FormType:
    label = label.strip().upper()
    if label.startswith("S-4"):
        return FormType.S4
    if label.startswith("8-K"):
        return FormType.FORM_8K
    return FormType.OTHER


def detect_form_type(text: str) -> FormType:
    """Form type from the EDGAR header, else from the "FORM S-4 / 8-K" banner."""
    if not text:
        return FormType.OTHER
    m = _SUBMISSION_TYPE_RE.search(text)
    if m:
        return _form_from_label(m.group(1))
    m = _FORM_BANNER_RE.search(text[:RAW_EXCERPT_LENGTH])
    if m:
        return _form_from_label(m.group(1))
    return FormType.OTHER


# ═══════════════════════════════════════════════════════════════════════════
#  Preconditions & failures
# ═══════════════════════════════════════════════════════════════════════════

def check_length(text: str, minimum: int, form_type: str) -> None:
    if len(text) < minimum:
        raise DocumentTooShort(len(text), minimum, form_type)


def failure(exc: Exception, text: str) -> ParseFailure:
    return ParseFailure(
        error=str(exc),
        error_type=type(exc).__name__,
        raw_text=(text or "")[:RAW_EXCERPT_LENGTH],
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Dispatch
# ═══════════════════════════════════════════════════════════════════════════

def parse_filing(
    raw: RawFiling | str,
    form_type: FormType | str | None = None,
    reference: ReferenceData | None = None,
) -> ParsedS4Record | ParsedForm8KRecord | ParseFailure:
    """Parse a filing with the parser matching its form type.

    The form type comes from ``form_type`` if given, then from the
    ``RawFiling``, then from the text itself.
    """
    from alphavault import form_8k, form_s4

    if isinstance(raw, RawFiling):
        text = raw.text
        declared = form_type or (raw.form_type if raw.form_type != FormType.OTHER else None)
    else:
        text = raw or ""
        declared = form_type

    resolved = FormType(declared) if declared else detect_form_type(text)
    if resolved == FormType.S4:
        return form_s4.parse(text, reference=reference)
    if resolved == FormType.FORM_8K:
        return form_8k.parse(text)

    log.warning("Unsupported form type for parsing: %s", resolved.value)
    return failure(ValueError(f"Unsupported form type '{resolved.value}'"), text)
