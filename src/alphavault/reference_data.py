"""Reference lists used by the parsers and scorers.

Advisor names, sector tables and ranking keywords live here as data so they
can be replaced without touching the extraction code.  ``get_reference_data()``
returns the built-in lists, merged with the JSON file named by
``REFERENCE_DATA_PATH`` when that setting is present.

Override file format — any subset of the fields below, e.g.::

    {"law_firms": ["Wachtell, Lipton, Rosen & Katz", "..."],
     "sector_premiums": {"Technology": 38}}

Dict fields are merged key by key; list fields replace the default list.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

log = logging.getLogger(__name__)


class SectorMultiples(BaseModel):
    ev_sales: float
    ev_ebitda: float


class KeywordTiers(BaseModel):
    """Deal-ranking keyword lists with their per-match points."""
    high: list[str] = Field(default_factory=lambda: [
        "merger", "acquisition", "acquire", "tender offer",
        "business combination", "definitive agreement",
    ])
    medium: list[str] = Field(default_factory=lambda: [
        "strategic alternatives", "letter of intent", "due diligence",
        "exclusivity", "fairness opinion", "purchase agreement",
    ])
    low: list[str] = Field(default_factory=lambda: [
        "partnership", "joint venture", "investment", "collaboration",
        "restructuring", "divestiture",
    ])
    high_points: int = 12
    medium_points: int = 6
    low_points: int = 2


class ReferenceData(BaseModel):
    law_firms: list[str] = Field(default_factory=lambda: [
        "Wachtell, Lipton, Rosen & Katz",
        "Skadden, Arps, Slate, Meagher & Flom",
        "Sullivan & Cromwell",
        "Cravath, Swaine & Moore",
        "Davis Polk & Wardwell",
        "Simpson Thacher & Bartlett",
        "Kirkland & Ellis",
        "Latham & Watkins",
        "Paul, Weiss, Rifkind, Wharton & Garrison",
        "Cleary Gottlieb Steen & Hamilton",
        "Fried, Frank, Harris, Shriver & Jacobson",
        "Gibson, Dunn & Crutcher",
        "Debevoise & Plimpton",
        "Shearman & Sterling",
        "Ropes & Gray",
    ])
    investment_banks: list[str] = Field(default_factory=lambda: [
        "Goldman Sachs",
        "Morgan Stanley",
        "J.P. Morgan",
        "JPMorgan",
        "Bank of America",
        "BofA Securities",
        "Citigroup",
        "Credit Suisse",
        "Barclays",
        "Deutsche Bank",
        "Lazard",
        "Evercore",
        "Centerview Partners",
        "Moelis & Company",
        "Qatalyst Partners",
        "PJT Partners",
        "Perella Weinberg",
        "Guggenheim Securities",
        "Jefferies",
        "UBS",
    ])
    auditors: list[str] = Field(default_factory=lambda: [
        "Deloitte", "PwC", "PricewaterhouseCoopers", "EY", "Ernst & Young",
        "KPMG", "BDO", "Grant Thornton", "RSM", "Crowe",
    ])

    # Prestige scoring: substring match against the advisors found above
    top_law_firms: list[str] = Field(default_factory=lambda: [
        "Wachtell", "Skadden", "Cravath", "Sullivan & Cromwell", "Davis Polk",
    ])
    top_banks: list[str] = Field(default_factory=lambda: [
        "Goldman Sachs", "Morgan Stanley", "J.P. Morgan", "Lazard", "Evercore",
    ])

    # Firms whose appearance in an 8-K summary counts as an M&A signal
    ma_law_firms: list[str] = Field(default_factory=lambda: [
        "Wachtell", "Skadden", "Cravath", "Sullivan & Cromwell",
        "Davis Polk", "Simpson Thacher", "Kirkland & Ellis",
    ])

    # Typical takeover premium (%) by sector
    sector_premiums: dict[str, float] = Field(default_factory=lambda: {
        "Technology": 35,
        "Healthcare": 30,
        "Financial": 25,
        "Consumer": 28,
        "Industrial": 25,
        "Energy": 22,
        "Telecom": 24,
        "Utilities": 20,
    })
    default_premium: float = 25

    sector_multiples: dict[str, SectorMultiples] = Field(default_factory=lambda: {
        "Technology": SectorMultiples(ev_sales=8.5, ev_ebitda=22.0),
        "Healthcare": SectorMultiples(ev_sales=5.2, ev_ebitda=18.5),
        "Financial": SectorMultiples(ev_sales=3.8, ev_ebitda=12.0),
        "Consumer": SectorMultiples(ev_sales=2.5, ev_ebitda=14.0),
        "Industrial": SectorMultiples(ev_sales=1.8, ev_ebitda=11.5),
        "Energy": SectorMultiples(ev_sales=1.5, ev_ebitda=9.0),
        "Telecom": SectorMultiples(ev_sales=2.2, ev_ebitda=10.5),
        "Utilities": SectorMultiples(ev_sales=2.0, ev_ebitda=9.5),
    })

    serial_acquirers: dict[str, list[str]] = Field(default_factory=lambda: {
        "Technology": ["Microsoft", "Oracle", "Cisco", "Salesforce", "Adobe"],
        "Healthcare": ["UnitedHealth", "CVS Health", "Johnson & Johnson", "Pfizer"],
        "Financial": ["JPMorgan Chase", "Bank of America", "Wells Fargo"],
        "Consumer": ["Procter & Gamble", "Nestlé", "Unilever"],
        "Industrial": ["General Electric", "Honeywell", "3M"],
    })

    keywords: KeywordTiers = Field(default_factory=KeywordTiers)

    def premium_for(self, sector: str | None) -> float:
        return self.sector_premiums.get(sector or "", self.default_premium)

    def multiples_for(self, sector: str | None) -> SectorMultiples:
        """Sector multiples, falling back to Industrial for unknown sectors."""
        return self.sector_multiples.get(sector or "") or self.sector_multiples["Industrial"]


def load_reference_data(path: str | Path | None = None) -> ReferenceData:
    """Build reference data, applying a JSON override file if given."""
    base = ReferenceData()
    if not path:
        return base

    override_path = Path(path)
    if not override_path.is_file():
        log.warning("Reference data file %s not found, using built-in lists", override_path)
        return base

    with override_path.open(encoding="utf-8") as fh:
        override = json.load(fh)

    merged = base.model_dump()
    for key, value in override.items():
        if key not in merged:
            log.warning("Ignoring unknown reference data key '%s'", key)
            continue
        if isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value

    log.info("Loaded reference data override from %s (%d keys)", override_path, len(override))
    return ReferenceData.model_validate(merged)


_reference: ReferenceData | None = None


def get_reference_data() -> ReferenceData:
    """Get or create the shared ReferenceData singleton."""
    global _reference
    if _reference is None:
        from alphavault.config import get_config
        _reference = load_reference_data(get_config().reference_data_path or None)
    return _reference
