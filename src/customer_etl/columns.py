from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from .rules import DEFAULT_RULES, RuleTables, header_slug

logger = logging.getLogger(__name__)


def normalize_column(header: str, rules: RuleTables = DEFAULT_RULES) -> str:
    """
    Map a raw export header to its canonical field name.

    Unknown headers fall through to a lowercase slug, with a trailing ``id``
    split off as ``_id`` (``billtoid`` -> ``billto_id``).
    """
    slug = header_slug(header)
    mapped = rules.header_mappings.get(slug)
    if mapped:
        return mapped
    if len(slug) > 2 and slug.endswith("id") and not slug.endswith("_id"):
        split = f"{slug[:-2]}_id"
        # configured extras may be keyed on the split form ("acct_id")
        return rules.header_mappings.get(split, split)
    return slug


def normalize_headers(headers: Sequence[str], rules: RuleTables = DEFAULT_RULES) -> List[str]:
    return [normalize_column(header, rules) for header in headers]


def column_index(headers: Sequence[str], rules: RuleTables = DEFAULT_RULES) -> Dict[str, int]:
    index: Dict[str, int] = {}
    for position, (raw, canonical) in enumerate(zip(headers, normalize_headers(headers, rules))):
        if not canonical:
            continue
        if canonical in index:
            logger.warning(
                "Header %r also maps to %s; keeping column %d", raw, canonical, index[canonical]
            )
            continue
        index[canonical] = position
    return index
