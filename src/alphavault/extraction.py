"""Regex field extraction shared by the S-4 and 8-K parsers.

Every dollar amount in the package goes through ``parse_money``:
a decimal number (thousands separators stripped) followed by
"million" (×1) or "billion" (×1000), giving USD millions.

Patterns are compiled case-insensitive.  Parsers describe their fields as
``ExtractionRule`` tables and run them through ``apply_rules``, so a pattern
can be tuned without touching the parser that uses it.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Iterable, NamedTuple, Sequence

from alphavault.models import MoneyAmount

# Number followed by a unit, with optional leading "$"
MONEY = r"\$?([\d,\.]+)\s*(million|billion)"

# Dates as they appear in filings: "March 3, 2024" or "3/3/2024"
LONG_DATE = r"[A-Za-z]+\s+\d{1,2},\s+\d{4}"
SLASH_DATE = r"\d{1,2}/\d{1,2}/\d{4}"

# Company names ending in a corporate suffix, on one line, at most 80 characters
COMPANY_NAME = r"[A-Z][A-Za-z &,.]{0,80}(?:Inc\.|Corp\.|LLC|Ltd\.)"

# Lazy gap between a label and its value: same line, at most 200 characters
GAP = r"[^\n]{0,200}?"

_UNIT_MULTIPLIERS = {"million": 1.0, "billion": 1000.0}
_LEADING_FLOAT = re.compile(r"\d+(?:\.\d*)?|\.\d+")

Pattern = str | re.Pattern[str]


@lru_cache(maxsize=512)
def _compile_str(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def compile_pattern(pattern: Pattern) -> re.Pattern[str]:
    """Compile a pattern case-insensitive (compiled patterns pass through)."""
    if isinstance(pattern, re.Pattern):
        return pattern
    return _compile_str(pattern)


# ═══════════════════════════════════════════════════════════════════════════
#  Primitive extractors
# ═══════════════════════════════════════════════════════════════════════════

def extract_pattern(text: str, pattern: Pattern, default: Any = None) -> Any:
    """First capture group of the first match, trimmed, else ``default``."""
    if not text:
        return default
    match = compile_pattern(pattern).search(text)
    if not match or match.group(1) is None:
        return default
    return match.group(1).strip()


def extract_all_patterns(text: str, pattern: Pattern) -> list[str]:
    """Every first-group capture in order of appearance (not deduplicated)."""
    if not text:
        return []
    return [
        m.group(1).strip()
        for m in compile_pattern(pattern).finditer(text)
        if m.group(1) is not None
    ]


def matches(text: str, pattern: Pattern) -> bool:
    return bool(text) and compile_pattern(pattern).search(text) is not None


def parse_number(raw: str | None) -> float | None:
    """Parse the leading decimal of ``raw`` after dropping thousands separators.

    "1,500" → 1500.0, "2.5x" → 2.5, "." → None.
    """
    if raw is None:
        return None
    match = _LEADING_FLOAT.match(raw.replace(",", "").strip())
    if not match:
        return None
    return float(match.group())


def parse_money(number: str | None, unit: str | None) -> float | None:
    """Normalise "<number> million|billion" to USD millions.

    A missing unit is treated as millions.
    """
    amount = parse_number(number)
    if amount is None:
        return None
    multiplier = _UNIT_MULTIPLIERS.get((unit or "million").lower(), 1.0)
    return amount * multiplier


def extract_money(text: str, pattern: Pattern) -> MoneyAmount | None:
    """Apply a two-group (number, unit) pattern and normalise the amount."""
    if not text:
        return None
    match = compile_pattern(pattern).search(text)
    if not match:
        return None
    value = parse_money(match.group(1), match.group(2))
    if value is None:
        return None
    return MoneyAmount(value=value)


def extract_first_money(text: str, patterns: Iterable[Pattern]) -> MoneyAmount | None:
    """Try money patterns in order; the first one that matches wins."""
    for pattern in patterns:
        found = extract_money(text, pattern)
        if found is not None:
            return found
    return None


def extract_metric(text: str, label: str) -> float | None:
    """Number after ``label`` with an optional million/billion unit.

    ``label`` is a regex alternation such as ``"net income|net earnings"``.
    """
    pattern = rf"(?:{label}){GAP}\$?([\d,\.]+)\s*(million|billion)?"
    if not text:
        return None
    match = compile_pattern(pattern).search(text)
    if not match:
        return None
    return parse_money(match.group(1), match.group(2))


def extract_context(text: str, index: int, length: int) -> str:
    """Up to ``length / 2`` characters either side of ``index``."""
    half = length // 2
    start = max(0, index - half)
    end = min(len(text), index + half)
    return text[start:end]


def extract_window(text: str, heading: Pattern, max_length: int = 2000) -> str:
    """Heading match plus up to ``max_length`` following characters, or ""."""
    if not text:
        return ""
    head = compile_pattern(heading)
    match = head.search(text)
    if not match:
        return ""
    return text[match.start():match.end() + max_length]


def dedupe(values: Iterable[Any]) -> list[Any]:
    """Order-preserving uniqueness."""
    return list(dict.fromkeys(values))


def find_names(text: str, names: Sequence[str]) -> list[str]:
    """Reference-list entries named in ``text`` as whole words (case-insensitive), list order.

    "UBS" is not found in "subsidiary", nor "EY" in "they".
    """
    if not text:
        return []
    return [name for name in names if matches(text, rf"(?<!\w){re.escape(name)}(?!\w)")]


# ═══════════════════════════════════════════════════════════════════════════
#  Rule tables
# ═══════════════════════════════════════════════════════════════════════════

class ExtractionRule(NamedTuple):
    """One named field and how to pull it out of a text window.

    kind:
        text    — trimmed capture group 1 (str | None)
        money   — groups (number, unit) normalised to USD millions (float | None)
        number  — leading decimal of group 1 (float | None)
        percent — same as number, for "NN%" captures
        flag    — True if any pattern matches anywhere
    Patterns are tried in order; the first that yields a value wins.
    """
    name: str
    patterns: tuple[str, ...]
    kind: str = "text"


def apply_rule(text: str, rule: ExtractionRule) -> Any:
    if rule.kind == "flag":
        return any(matches(text, p) for p in rule.patterns)
    if rule.kind == "money":
        found = extract_first_money(text, rule.patterns)
        return found.value if found else None

    for pattern in rule.patterns:
        if rule.kind == "text":
            value = extract_pattern(text, pattern)
        elif rule.kind in ("number", "percent"):
            value = parse_number(extract_pattern(text, pattern))
        else:
            raise ValueError(f"Unknown extraction kind '{rule.kind}' for rule '{rule.name}'")
        if value is not None:
            return value
    return None


def apply_rules(text: str, rules: Iterable[ExtractionRule]) -> dict[str, Any]:
    """Run a rule table over one text window → {rule name: value}."""
    return {rule.name: apply_rule(text, rule) for rule in rules}
