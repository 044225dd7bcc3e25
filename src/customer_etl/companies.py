from __future__ import annotations

import re
from typing import Optional

from .normalization import title_case
from .rules import DEFAULT_RULES, RuleTables

PUNCTUATION_RE = re.compile(r"[^\w\s]")


def canonicalize_company(name: Optional[str], rules: RuleTables = DEFAULT_RULES) -> str:
    """
    Produce the display form of a customer/company name.

    Known variants resolve through the variant table ("chevron corp" ->
    "Chevron Corporation"). Otherwise a trailing corporate suffix is expanded
    and the rest of the name is kept verbatim ("Acme Oil corp" ->
    "Acme Oil Corporation"); names without a suffix are title-cased.
    """
    normalized = " ".join((name or "").split())
    if not normalized:
        return ""

    lowered = normalized.lower()
    canonical = rules.company_variants.get(lowered) or rules.company_variants.get(
        lowered.rstrip(".")
    )
    if canonical:
        return canonical

    base = normalized.rstrip(".")
    base_lower = base.lower()
    for suffix, expansion in rules.company_suffixes:
        if base_lower.endswith(suffix):
            return base[: -len(suffix)] + expansion

    return title_case(normalized)


def normalize_company_key(name: Optional[str], rules: RuleTables = DEFAULT_RULES) -> str:
    """Comparison key for blocking: no punctuation, no corporate designations."""
    stripped = PUNCTUATION_RE.sub("", (name or "").lower())
    tokens = stripped.split()
    kept = [token for token in tokens if token not in rules.corporate_designations]
    # a name made only of designations ("Company Inc") still needs a key
    return " ".join(kept or tokens)
