"""Tests for the 8-K parser."""

import time

import pytest
from conftest import EIGHT_K_TEXT, padded

from alphavault import form_8k
from alphavault.models import CriticalFlags, FilingItem, Item201, ParsedForm8KRecord, ParseFailure, RiskLevel

SHORT_CAP = 5000


@pytest.fixture
def record(eight_k_text):
    parsed = form_8k.parse(eight_k_text)
    assert isinstance(parsed, ParsedForm8KRecord)
    return parsed


def test_short_document_fails_softly():
    result = form_8k.parse("Item 2.01 tiny")
    assert isinstance(result, ParseFailure)
    assert result.error_type == "DocumentTooShort"


def test_metadata(record):
    assert record.metadata.accession_number == "0000987654-24-000010"
    assert record.metadata.filer.cik == "0000987654"
    assert record.metadata.trading_symbol == "GMA"


def test_items_in_order(record):
    assert [i.item_number for i in record.items] == ["1.01", "2.01", "5.02", "9.01"]
    assert record.items[0].description == "Entry into a Material Definitive Agreement"
    assert record.items[1].full_text.startswith("Item 2.01")


def test_items_deduplicated():
    text = "Item 2.01 Completion\nfirst\nItem 9.01 Exhibits\nItem 2.01 Completion (continued)\n" + "x" * 500
    items = form_8k.parse_items(text)
    assert [i.item_number for i in items] == ["2.01", "9.01"]


def test_event_date(record):
    assert record.event_date == "March 1, 2024"


def test_event_date_patterns():
    assert form_8k.extract_event_date("Event Date: 03/01/2024") == "03/01/2024"
    assert form_8k.extract_event_date("Event Date 2024-03-01") == "2024-03-01"
    assert form_8k.extract_event_date("no date here") is None


def test_item101(record):
    item = record.item101
    assert item.detected
    assert any("credit agreement" in t for t in item.agreement_types)
    assert item.parties == ["Delta Bank Corp."]
    assert item.key_terms == ["Term: 5 years", "Amount: $500M"]
    assert item.material_clauses == ["Confidentiality", "Indemnification"]


def test_item201(record):
    item = record.item201
    assert item.transaction_type == "acquisition"
    assert item.purchase_price.value == 250.0
    assert item.closing_date == "March 1, 2024"
    assert item.source_of_funds == ["Cash on hand", "Debt financing"]


def test_item502(record):
    item = record.item502
    assert [c.action for c in item.changes] == ["resigned", "appointed"]
    assert item.effective_dates == "March 4, 2024"


def test_item901(record):
    assert record.item901.exhibits_listed == ["10.1", "99.1"]
    assert not record.item901.has_pro_forma


def test_absent_items_are_none(record):
    assert record.item202 is None
    assert record.item701 is None
    assert record.item801 is None


def test_item_parsers_return_none_when_absent():
    text = "Item 8.01 Other Events\nThe board declared a dividend."
    assert form_8k.parse_item101(text, SHORT_CAP) is None
    assert form_8k.parse_item201(text, SHORT_CAP) is None
    assert form_8k.parse_item502(text, SHORT_CAP) is None
    assert form_8k.parse_item801(text, SHORT_CAP).event_description.startswith("Item 8.01")


def test_item202_earnings():
    text = (
        "Item 2.02 Results of Operations and Financial Condition\n"
        "On April 25, 2024 the Company issued a press release announcing results for the quarter "
        "ended March 31, 2024. Revenue was $1.2 billion and net income was $150 million. "
        "A conference call will be held on April 26, 2024 at 5:00 PM Eastern.\n"
    )
    item = form_8k.parse_item202(text, SHORT_CAP)
    assert item.has_press_release
    assert item.reporting_period == "March 31, 2024"
    assert item.earnings_metrics.revenue == 1200.0
    assert item.earnings_metrics.net_income == 150.0
    assert item.conference_call.has_call
    assert item.conference_call.date == "April 26, 2024"
    assert item.conference_call.time == "5:00 PM"


def test_reporting_period_quarter_label():
    assert form_8k.reporting_period("Results for Q3 2024 were strong") == "Q3 2024"


def test_acquisitions(record):
    assert len(record.acquisitions) == 1
    assert record.acquisitions[0].target == "Epsilon Labs LLC"
    assert record.acquisitions[0].value == 250.0


def test_material_agreements(record):
    assert len(record.material_agreements) == 1
    assert record.material_agreements[0].type == "a credit agreement"


def test_leadership_changes(record):
    assert [c.action for c in record.leadership_changes] == ["resigned", "appointed"]


def test_financial_results(record):
    assert not record.financial_results.has_earnings_release
    assert not record.financial_results.has_guidance


def test_signatures(record):
    assert len(record.signatures) == 1
    assert record.signatures[0].name == "John Carter"
    assert record.signatures[0].title == "Chief Executive Officer"


def test_exhibits(record):
    assert [e.number for e in record.exhibits] == ["10.1", "99.1"]


def test_critical_flags_clean(record):
    assert record.critical_flags.count() == 0


def test_critical_flags_detected():
    flags = form_8k.parse_critical_flags(
        "Item 1.03 Bankruptcy or Receivership. Substantial doubt about the ability to continue "
        "as a going concern. Prior statements were restated."
    )
    assert flags.bankruptcy
    assert flags.going_concern
    assert flags.restatement
    assert not flags.delisting
    assert flags.count() == 3


def test_analytics(record):
    a = record.analytics
    assert a.total_items == 4
    assert a.criticality_score == 100
    assert a.market_impact == RiskLevel.HIGH
    assert a.item_breakdown.corporate == ["1.01"]
    assert a.item_breakdown.financial == ["2.01"]
    assert a.item_breakdown.governance == ["5.02"]
    assert a.item_breakdown.other == ["9.01"]
    assert a.critical_flags_count == 0


def test_criticality_item201_with_material_weakness():
    record = ParsedForm8KRecord(
        item201=Item201(),
        critical_flags=CriticalFlags(material_weakness=True),
    )
    score = form_8k.calculate_criticality_score(record)
    assert score == 100
    assert form_8k.assess_market_impact(score) == RiskLevel.HIGH


def test_market_impact_bands():
    assert form_8k.assess_market_impact(80) == RiskLevel.HIGH
    assert form_8k.assess_market_impact(79) == RiskLevel.MEDIUM
    assert form_8k.assess_market_impact(40) == RiskLevel.MEDIUM
    assert form_8k.assess_market_impact(39) == RiskLevel.LOW


def test_categorize_items():
    items = [FilingItem(item_number=n, description="", full_text="") for n in ("4.01", "8.01", "1.02")]
    breakdown = form_8k.categorize_items(items)
    assert breakdown.regulatory == ["4.01"]
    assert breakdown.other == ["8.01"]
    assert breakdown.corporate == ["1.02"]


def test_parse_is_idempotent(eight_k_text):
    assert form_8k.parse(eight_k_text).model_dump() == form_8k.parse(eight_k_text).model_dump()


FILLER = (
    "The Company acquired additional equipment from Delta Bank Corp. for general corporate purposes "
    "and entered into a services agreement with Epsilon Labs LLC, which was signed by the Chief "
    "Executive Officer and approved by the board of directors.\n"
)


def test_large_filing_parses_in_bounded_time():
    text = padded(EIGHT_K_TEXT, FILLER)
    started = time.perf_counter()
    parsed = form_8k.parse(text)
    elapsed = time.perf_counter() - started

    assert elapsed < 10
    assert isinstance(parsed, ParsedForm8KRecord)
    assert [a.target for a in parsed.acquisitions] == ["Epsilon Labs LLC"]
    assert {a.type for a in parsed.material_agreements} == {"a credit agreement", "a services agreement"}


def test_acquisition_name_stays_on_its_line():
    text = "The Company acquired Zeta\nHoldings Inc. for $40 million."
    assert form_8k.parse_acquisitions(text) == []
