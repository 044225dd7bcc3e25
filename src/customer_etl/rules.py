from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

COLOR_GRADE_COLUMNS = tuple(f"color_grade_{n}" for n in range(1, 6))
WALL_LOSS_COLUMNS = tuple(f"wall_loss_{n}" for n in range(1, 6))
WSTRING_COLOR_COLUMNS = tuple(f"wstring_color_{n}" for n in range(1, 6))
WSTRING_LOSS_COLUMNS = tuple(f"wstring_loss_{n}" for n in range(1, 6))

CANONICAL_COLUMNS: Tuple[str, ...] = (
    "customer_id",
    "customer_name",
    "billing_address",
    "billing_city",
    "billing_state",
    "billing_zip_code",
    "contact_name",
    "phone_number",
    "fax_number",
    "email_address",
    *COLOR_GRADE_COLUMNS,
    *WALL_LOSS_COLUMNS,
    *WSTRING_COLOR_COLUMNS,
    *WSTRING_LOSS_COLUMNS,
    "is_deleted",
    "tenant_id",
)

HEADER_MAPPINGS: Dict[str, str] = {
    "custid": "customer_id",
    "cust_id": "customer_id",
    "customerid": "customer_id",
    "customer": "customer_name",
    "custname": "customer_name",
    "cust_name": "customer_name",
    "customername": "customer_name",
    "billaddr": "billing_address",
    "billaddress": "billing_address",
    "billingaddr": "billing_address",
    "billingaddress": "billing_address",
    "billing_addr": "billing_address",
    "billcity": "billing_city",
    "billingcity": "billing_city",
    "billstate": "billing_state",
    "billingstate": "billing_state",
    "billzip": "billing_zip_code",
    "billzipcode": "billing_zip_code",
    "billingzip": "billing_zip_code",
    "billingzipcode": "billing_zip_code",
    "billing_zip": "billing_zip_code",
    "billing_zipcode": "billing_zip_code",
    "contact": "contact_name",
    "contactname": "contact_name",
    "phone": "phone_number",
    "phoneno": "phone_number",
    "phonenum": "phone_number",
    "phone_no": "phone_number",
    "telephone": "phone_number",
    "fax": "fax_number",
    "faxno": "fax_number",
    "faxnum": "fax_number",
    "fax_no": "fax_number",
    "email": "email_address",
    "e_mail": "email_address",
    "emailaddr": "email_address",
    "emailaddress": "email_address",
    "deleted": "is_deleted",
    "isdeleted": "is_deleted",
}
for _n in range(1, 6):
    HEADER_MAPPINGS[f"color{_n}"] = f"color_grade_{_n}"
    HEADER_MAPPINGS[f"loss{_n}"] = f"wall_loss_{_n}"
    HEADER_MAPPINGS[f"wscolor{_n}"] = f"wstring_color_{_n}"
    HEADER_MAPPINGS[f"wsloss{_n}"] = f"wstring_loss_{_n}"
del _n

# Oil & gas customers seen in the legacy exports.
COMPANY_VARIANTS: Dict[str, str] = {
    "chevron": "Chevron Corporation",
    "chevron corp": "Chevron Corporation",
    "chevron corporation": "Chevron Corporation",
    "exxon": "ExxonMobil Corporation",
    "exxon mobil": "ExxonMobil Corporation",
    "exxonmobil": "ExxonMobil Corporation",
    "bp": "BP America Inc.",
    "bp america": "BP America Inc.",
    "bp america inc": "BP America Inc.",
    "shell": "Shell Oil Company",
    "shell oil": "Shell Oil Company",
    "shell oil company": "Shell Oil Company",
    "conoco": "ConocoPhillips",
    "conocophillips": "ConocoPhillips",
    "conoco phillips": "ConocoPhillips",
    "marathon": "Marathon Oil Corporation",
    "marathon oil": "Marathon Oil Corporation",
    "marathon petroleum": "Marathon Petroleum Corporation",
    "valero": "Valero Energy Corporation",
    "valero energy": "Valero Energy Corporation",
    "phillips 66": "Phillips 66",
    "phillips66": "Phillips 66",
    "kinder morgan": "Kinder Morgan Inc.",
    "enterprise": "Enterprise Products Partners",
    "plains": "Plains All American Pipeline",
}

# Longest first so " corporation" wins over shorter endings.
COMPANY_SUFFIXES: Tuple[Tuple[str, str], ...] = (
    (" corporation", " Corporation"),
    (" company", " Company"),
    (" corp", " Corporation"),
    (" inc", " Inc."),
    (" llc", " LLC"),
    (" ltd", " Ltd."),
    (" lp", " LP"),
    (" co", " Company"),
)

CORPORATE_DESIGNATIONS: FrozenSet[str] = frozenset(
    {
        "corporation",
        "corp",
        "incorporated",
        "inc",
        "llc",
        "lp",
        "ltd",
        "limited",
        "company",
        "co",
    }
)

STATE_NAMES: Dict[str, str] = {
    "ALABAMA": "AL",
    "ALASKA": "AK",
    "ARIZONA": "AZ",
    "ARKANSAS": "AR",
    "CALIFORNIA": "CA",
    "COLORADO": "CO",
    "CONNECTICUT": "CT",
    "DELAWARE": "DE",
    "FLORIDA": "FL",
    "GEORGIA": "GA",
    "HAWAII": "HI",
    "IDAHO": "ID",
    "ILLINOIS": "IL",
    "INDIANA": "IN",
    "IOWA": "IA",
    "KANSAS": "KS",
    "KENTUCKY": "KY",
    "LOUISIANA": "LA",
    "MAINE": "ME",
    "MARYLAND": "MD",
    "MASSACHUSETTS": "MA",
    "MICHIGAN": "MI",
    "MINNESOTA": "MN",
    "MISSISSIPPI": "MS",
    "MISSOURI": "MO",
    "MONTANA": "MT",
    "NEBRASKA": "NE",
    "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH",
    "NEW JERSEY": "NJ",
    "NEW MEXICO": "NM",
    "NEW YORK": "NY",
    "NORTH CAROLINA": "NC",
    "NORTH DAKOTA": "ND",
    "OHIO": "OH",
    "OKLAHOMA": "OK",
    "OREGON": "OR",
    "PENNSYLVANIA": "PA",
    "RHODE ISLAND": "RI",
    "SOUTH CAROLINA": "SC",
    "SOUTH DAKOTA": "SD",
    "TENNESSEE": "TN",
    "TEXAS": "TX",
    "UTAH": "UT",
    "VERMONT": "VT",
    "VIRGINIA": "VA",
    "WASHINGTON": "WA",
    "WEST VIRGINIA": "WV",
    "WISCONSIN": "WI",
    "WYOMING": "WY",
    "DISTRICT OF COLUMBIA": "DC",
}

STATE_CODES: FrozenSet[str] = frozenset(STATE_NAMES.values())

_HEADER_SLUG_RE = re.compile(r"[^a-z0-9_]+")


def header_slug(raw: str) -> str:
    key = _HEADER_SLUG_RE.sub("_", (raw or "").strip().lower().replace('"', "").replace("'", ""))
    return re.sub(r"_+", "_", key).strip("_")


@dataclass(frozen=True)
class RuleTables:
    """Read-only lookup tables shared by every stage of a cleaning run."""

    header_mappings: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(HEADER_MAPPINGS))
    )
    company_variants: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(COMPANY_VARIANTS))
    )
    company_suffixes: Tuple[Tuple[str, str], ...] = COMPANY_SUFFIXES
    corporate_designations: FrozenSet[str] = CORPORATE_DESIGNATIONS
    state_names: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(STATE_NAMES))
    )
    state_codes: FrozenSet[str] = STATE_CODES


def build_rule_tables(
    header_mappings: Optional[Mapping[str, str]] = None,
    company_variants: Optional[Mapping[str, str]] = None,
) -> RuleTables:
    """
    Merge configured extras over the built-in tables and freeze the result.

    Extra header mappings must target a canonical column so that column
    normalization stays idempotent.
    """
    headers = dict(HEADER_MAPPINGS)
    for raw, target in (header_mappings or {}).items():
        if target not in CANONICAL_COLUMNS:
            raise ValueError(f"header mapping {raw!r} targets unknown column {target!r}")
        key = header_slug(raw)
        if key and key not in CANONICAL_COLUMNS:
            headers[key] = target

    variants = dict(COMPANY_VARIANTS)
    for raw, canonical in (company_variants or {}).items():
        key = " ".join(str(raw).split()).lower()
        if key and str(canonical).strip():
            variants[key] = str(canonical).strip()

    return RuleTables(
        header_mappings=MappingProxyType(headers),
        company_variants=MappingProxyType(variants),
    )


DEFAULT_RULES = RuleTables()
