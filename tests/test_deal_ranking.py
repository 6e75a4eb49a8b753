"""Tests for deal ranking and narration."""

from datetime import datetime, timezone

import pytest
from conftest import AS_OF, FakeSource, filing

from alphavault.deal_ranking import (
    DealRanker,
    confidence_for,
    narrate,
    recent_candidates,
    score_form_type,
    score_item_relevance,
    score_keyword_signals,
    score_recency,
)
from alphavault.models import DealCandidate
from alphavault.scoring import UNAVAILABLE


def _day(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def ranker(reference):
    return DealRanker(reference=reference, as_of=AS_OF)


def merger_candidate(**overrides):
    fields = dict(
        company_name="Alpha Holdings",
        cik="1234567",
        form_type="S-4",
        filed_date=_day(2024, 5, 30),
        document_length=5000,
        summary="Agreement and plan of merger between Alpha and Beta",
    )
    fields.update(overrides)
    return DealCandidate(**fields)


def test_rank_orders_by_score(ranker):
    quarterly = DealCandidate(company_name="Omega Corp", cik="999", form_type="10-Q",
                              filed_date=_day(2023, 1, 1))
    ranked = ranker.rank([quarterly, merger_candidate()])

    assert [r.candidate.company_name for r in ranked] == ["Alpha Holdings", "Omega Corp"]
    best, worst = ranked
    assert best.score == 65
    assert (best.confidence, best.emoji) == ("LIKELY", "🟢")
    assert best.factors["item_relevance"] is None
    assert worst.score == 10
    assert worst.confidence == "UNLIKELY"


def test_rank_breakdown_marks_missing_items(ranker):
    ranked = ranker.rank([merger_candidate()])
    entry = next(e for e in ranked[0].breakdown if e.name == "Item Relevance")
    assert entry.status == UNAVAILABLE


def test_rank_tie_breaks(ranker):
    ranked = ranker.rank([
        merger_candidate(company_name="Beta Inc", cik="2", filed_date=_day(2024, 5, 30)),
        merger_candidate(company_name="alpha Inc", cik="3", filed_date=_day(2024, 5, 30)),
        merger_candidate(company_name="Zeta Inc", cik="4", filed_date=_day(2024, 5, 31)),
    ])
    assert len({r.score for r in ranked}) == 1
    assert [r.candidate.company_name for r in ranked] == ["Zeta Inc", "alpha Inc", "Beta Inc"]


def test_rank_accepts_feed_rows(ranker):
    ranked = ranker.rank([
        {"companyName": "Gamma Industries", "cik": 987654, "formType": "8-K",
         "filedDate": "2024-05-28T00:00:00", "items": "2.01, 9.01", "summary": None},
    ])
    deal = ranked[0]
    assert deal.candidate.cik == "987654"
    assert deal.candidate.items == ["2.01", "9.01"]
    assert deal.candidate.summary == ""
    assert deal.factors["item_relevance"] == 100
    assert deal.factors["form_type"] == 60


def test_company_activity_normalises_cik(ranker):
    ranked = ranker.rank([
        merger_candidate(cik="0000111"),
        merger_candidate(cik="111"),
        merger_candidate(cik="111", company_name="Alpha Holdings Inc"),
        merger_candidate(cik="", company_name="Solo Co"),
    ])
    by_name = {r.candidate.company_name: r for r in ranked}
    assert by_name["Alpha Holdings Inc"].factors["company_activity"] == 75
    assert by_name["Solo Co"].factors["company_activity"] == 25


def test_missing_filed_date_is_unavailable(ranker):
    ranked = ranker.rank([merger_candidate(filed_date=None)])
    assert ranked[0].factors["recency"] is None
    entry = next(e for e in ranked[0].breakdown if e.name == "Recency")
    assert entry.status == UNAVAILABLE


def test_keyword_signals(reference):
    text = "Merger merger acquisition due diligence joint venture"
    assert score_keyword_signals(text, reference.keywords) == 44
    assert score_keyword_signals("merger " * 10, reference.keywords) == 100
    assert score_keyword_signals("quarterly dividend", reference.keywords) == 0


def test_item_relevance():
    assert score_item_relevance(["8.01", "2.01"]) == 100
    assert score_item_relevance(["3.02"]) == 10
    assert score_item_relevance([]) is None


def test_form_type_scores():
    assert score_form_type("s-4/a") == 100
    assert score_form_type(" DEFM14A ") == 90
    assert score_form_type("SC 13D") == 50
    assert score_form_type("S-1") == 10


def test_recency_tiers():
    assert score_recency(_day(2024, 5, 25), AS_OF) == 100
    assert score_recency(_day(2024, 5, 5), AS_OF) == 80
    assert score_recency(_day(2024, 5, 1), AS_OF) == 60
    assert score_recency(_day(2024, 1, 1), AS_OF) == 20
    assert score_recency(_day(2023, 1, 1), AS_OF) == 0
    assert score_recency(_day(2024, 7, 1), AS_OF) == 100
    assert score_recency(None, AS_OF) is None


def test_confidence_bands():
    assert confidence_for(75) == ("VERY LIKELY", "🟢")
    assert confidence_for(45) == ("MODERATE", "🟡")
    assert confidence_for(30) == ("UNCERTAIN", "🟠")
    assert confidence_for(29) == ("UNLIKELY", "🔴")


def test_narrate_empty():
    assert "No deals to rank." in narrate([])


def test_narrate_nothing_shown(ranker):
    ranked = ranker.rank([merger_candidate()])
    assert "No deals to rank." in narrate(ranked, top=0)
    assert "No deals to rank." in narrate(ranked, top=-1)


def test_narrate(ranker):
    ranked = ranker.rank([
        merger_candidate(deal_value=1500),
        merger_candidate(company_name="Omega Corp", cik="9", form_type="10-Q", filed_date=None),
    ])
    text = narrate(ranked, top=5)
    assert text.startswith("📊 **M&A Deal Ranking**")
    assert "**1. Alpha Holdings** (S-4)" in text
    assert "Score: 65/100" in text
    assert "Omega Corp" in text
    assert "date unknown" in text
    assert "$1.5B" in text
    assert "1 merger registration(s) (S-4)" in text


def test_recent_candidates():
    source = FakeSource(
        s4=[filing(companyName="Alpha Holdings", formType="S-4", cik="1")],
        eight_k=[filing(companyName=None, formType="8-K", items="2.01")],
    )
    candidates = recent_candidates(source, days=14)
    assert [c.form_type for c in candidates] == ["S-4", "8-K"]
    assert candidates[1].company_name == "Unknown"
    assert candidates[1].items == ["2.01"]
    calls = dict(source.calls)
    assert calls["get_s4_bulk"]["days"] == 14
    assert calls["get_8k_bulk"]["items"] == "1.01,2.01"
