"""AlphaVault: MCP server for SEC M&A filing analysis.

Tool hierarchy
──────────────
  Parsing (plain filing text in, structured record out)
    1. parse_s4_text            — Form S-4 → deal structure, terms, advisors …
    2. parse_8k_text            — Form 8-K → items, events, criticality
    3. parse_filing_text        — either form, type detected from the header

  Deal-level (one S-4: pass text, or accession_number + cik to fetch it)
    4. score_deal               — quality / completion / timeline / risk / prestige
    5. regulatory_timeline      — months per review stage + estimated close date
    6. integration_risk         — weighted post-merger integration risk
    7. break_up_fee             — fee as % of deal value vs the 2-4% norm
    8. takeover_premium         — sector premium → target price

  Company / market (filing feed)
    9. ma_probability           — 0-100 probability a company is in play
   10. deal_comps               — recent S-4 deals with values + statistics
   11. serial_acquirers         — most active acquirers (Item 2.01 8-Ks)
   12. rank_deals               — rank + narrate deal filings for chat

  Quotes
   13. score_quote              — composite investment score from quote + profile
"""

from __future__ import annotations

from fastmcp import FastMCP

from alphavault import form_8k, form_s4
from alphavault.deal_ranking import DealRanker, narrate, recent_candidates
from alphavault.filings import parse_filing
from alphavault.ma_analytics import MAAnalyticsEngine
from alphavault.models import DealCandidate, ParsedS4Record, ParseFailure
from alphavault.quote_scoring import score_quote as _score_quote

mcp = FastMCP(name="AlphaVault")

# Lazy singleton: the feed client is only built when a feed tool is called
_engine: MAAnalyticsEngine | None = None


def _get_engine() -> MAAnalyticsEngine:
    global _engine
    if _engine is None:
        _engine = MAAnalyticsEngine()
    return _engine


def _resolve_s4(
    text: str | None,
    accession_number: str | None,
    cik: str | None,
) -> ParsedS4Record | ParseFailure:
    """Parse S-4 text given directly, or fetched from the feed by accession + CIK."""
    if not text:
        if not accession_number or not cik:
            raise ValueError(
                "Provide either 'text' directly, or 'accession_number' + 'cik' "
                "to fetch the S-4 from the filing feed."
            )
        text = _get_engine().source.get_s4_content(accession_number, cik)
    return form_s4.parse(text)


# ═══════════════════════════════════════════════════════════════════════════
#  PARSING
# ═══════════════════════════════════════════════════════════════════════════


@mcp.tool()
def parse_s4_text(text: str) -> dict:
    """Parse the plain text of a Form S-4 merger registration.

    Returns deal structure, financial terms (USD millions), parties, advisors,
    regulatory approvals, closing conditions, synergies, risk factors,
    termination clauses, shareholder info, exhibits and deal analytics.
    Documents shorter than 1000 characters come back as an error record.
    """
    return form_s4.parse(text).model_dump()


@mcp.tool()
def parse_8k_text(text: str) -> dict:
    """Parse the plain text of a Form 8-K current report.

    Returns the items reported, per-item details (None when an item is absent),
    acquisitions, agreements, leadership changes, critical flags and a
    criticality score with market impact.
    """
    return form_8k.parse(text).model_dump()


@mcp.tool()
def parse_filing_text(text: str, form_type: str | None = None) -> dict:
    """Parse an S-4 or 8-K, detecting the form from its header if form_type is omitted."""
    return parse_filing(text, form_type=form_type).model_dump()


# ═══════════════════════════════════════════════════════════════════════════
#  DEAL-LEVEL
# ═══════════════════════════════════════════════════════════════════════════


@mcp.tool()
def score_deal(
    text: str | None = None,
    accession_number: str | None = None,
    cik: str | None = None,
) -> dict:
    """Score one S-4 deal.

    Returns deal quality (50-100), completion probability, estimated months
    to close, risk score and advisor prestige, plus the break-up fee read.
    """
    record = _resolve_s4(text, accession_number, cik)
    if isinstance(record, ParseFailure):
        return record.model_dump()
    return {
        "acquirer": record.deal_structure.acquirer_name,
        "target": record.deal_structure.target_name,
        "deal_type": record.deal_structure.deal_type.value,
        "deal_value": record.financial_terms.deal_value,
        "analytics": record.analytics.model_dump() if record.analytics else None,
        "break_up_fee": _get_engine().analyze_break_up_fee(record).model_dump(),
    }


@mcp.tool()
def regulatory_timeline(
    text: str | None = None,
    accession_number: str | None = None,
    cik: str | None = None,
) -> dict:
    """Predict regulatory review stages, total months and an estimated close date."""
    record = _resolve_s4(text, accession_number, cik)
    if isinstance(record, ParseFailure):
        return record.model_dump()
    return _get_engine().predict_regulatory_timeline(record).model_dump()


@mcp.tool()
def integration_risk(
    text: str | None = None,
    accession_number: str | None = None,
    cik: str | None = None,
) -> dict:
    """Weighted post-merger integration risk (debt, synergies, regulatory, timeline)."""
    record = _resolve_s4(text, accession_number, cik)
    if isinstance(record, ParseFailure):
        return record.model_dump()
    return _get_engine().calculate_integration_risk(record).model_dump()


@mcp.tool()
def break_up_fee(
    text: str | None = None,
    accession_number: str | None = None,
    cik: str | None = None,
) -> dict:
    """Break-up fee as a percentage of deal value, assessed against the 2-4% norm."""
    record = _resolve_s4(text, accession_number, cik)
    if isinstance(record, ParseFailure):
        return record.model_dump()
    return _get_engine().analyze_break_up_fee(record).model_dump()


@mcp.tool()
def takeover_premium(current_price: float, sector: str, market_cap: float) -> dict:
    """Estimate a takeover premium and target price.

    Args:
        current_price: current share price
        sector: Technology, Healthcare, Financial, Consumer, Industrial,
            Energy, Telecom or Utilities (others use a 25% default)
        market_cap: market capitalisation in USD millions
    """
    return _get_engine().calculate_takeover_premium(current_price, sector, market_cap).model_dump()


# ═══════════════════════════════════════════════════════════════════════════
#  COMPANY / MARKET
# ═══════════════════════════════════════════════════════════════════════════


@mcp.tool()
def ma_probability(ticker: str, lookback_days: int = 90) -> dict:
    """Probability (0-100) that a company is involved in M&A soon.

    Combines 8-K filing pace, material agreements, leadership changes, board
    activity and M&A counsel mentions.  Signals without data are reported as
    null and excluded from the score; failed feed calls are listed in 'errors'.
    """
    return _get_engine().calculate_ma_probability(ticker, lookback_days=lookback_days).model_dump()


@mcp.tool()
def deal_comps(sector: str, years: int = 2) -> dict:
    """Comparable S-4 deals from the last N years with value and premium statistics."""
    return _get_engine().get_deal_comps(sector, years=years).model_dump()


@mcp.tool()
def serial_acquirers(sector: str, years: int = 5) -> dict:
    """Companies with the most completed acquisitions (8-K Item 2.01) over N years."""
    return _get_engine().get_serial_acquirers(sector, years=years).model_dump()


@mcp.tool()
def rank_deals(
    deals: list[dict] | None = None,
    days: int = 30,
    top: int = 5,
) -> dict:
    """Rank deal filings by M&A relevance and narrate the best ones.

    Pass 'deals' (feed rows: companyName, formType, filedDate, summary, items …),
    or leave it empty to rank the last N days of S-4s and acquisition 8-Ks.
    """
    if top < 1:
        raise ValueError("top must be at least 1")
    if deals is None:
        candidates = recent_candidates(_get_engine().source, days=days)
    else:
        candidates = [DealCandidate.model_validate(d) for d in deals]

    ranked = DealRanker().rank(candidates)
    return {
        "total": len(ranked),
        "ranked": [r.model_dump() for r in ranked[:top]],
        "narrative": narrate(ranked, top=top),
    }


# ═══════════════════════════════════════════════════════════════════════════
#  QUOTES
# ═══════════════════════════════════════════════════════════════════════════


@mcp.tool()
def score_quote(quote: dict, profile: dict | None = None) -> dict:
    """Composite 0-100 investment score from a quote and an optional company profile.

    quote: symbol, current, high, low, change_percent, volume, avg_volume
    profile: name, sector, market_cap (USD millions), roe, profit_margin,
        debt_to_equity, beta (ratios in percent)
    """
    return _score_quote(quote, profile).model_dump()


# ═══════════════════════════════════════════════════════════════════════════
#  ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import sys

    # Support SSE transport for remote hosting:
    #   python -m alphavault.server --sse
    # Default is STDIO (for local MCP clients)
    if "--sse" in sys.argv:
        from alphavault.config import get_config
        mcp.run(transport="sse", port=get_config().port)
    else:
        mcp.run()
