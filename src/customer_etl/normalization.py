from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional

import phonenumbers
from email_validator import EmailNotValidError, validate_email

from .rules import DEFAULT_RULES, RuleTables

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}$")
FORMATTED_PHONE_RE = re.compile(r"^(?:1 )?\(\d{3}\) \d{3}-\d{4}$")
ZIP_STRIP_RE = re.compile(r"[^A-Za-z0-9-]")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
WHITESPACE_RE = re.compile(r"\s+")

NULL_TOKENS = {"", "NULL", "null", "0000-00-00"}
TRUE_TOKENS = {"1", "true", "t", "yes", "y"}


@dataclass(frozen=True)
class CleaningSettings:
    zip_auto_hyphenate: bool = False


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Trim a raw cell and map the export's null spellings to ``None``."""
    s = (value or "").strip()
    if s in NULL_TOKENS:
        return None
    return s


def _collapse(value: str) -> str:
    return WHITESPACE_RE.sub(" ", value).strip()


def clean_email(value: Optional[str]) -> Optional[str]:
    """
    Lowercased address, or ``None`` when it is not a usable email.

    On top of the pattern check, email_validator rejects special-use domains
    (``.local``, ``.test``, ``localhost``...), so intranet-only addresses from
    the legacy system are nulled rather than exported as contact emails.
    """
    candidate = (value or "").strip().lower()
    if not candidate or not EMAIL_RE.match(candidate):
        return None
    try:
        validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as exc:
        logger.debug("email_validator rejected %s: %s", candidate, exc)
        return None
    return candidate


def phone_digits(value: Optional[str]) -> str:
    return phonenumbers.normalize_digits_only(value or "")


def clean_phone(value: Optional[str]) -> Optional[str]:
    """
    Format US numbers as ``(XXX) XXX-XXXX`` or ``1 (XXX) XXX-XXXX``.

    Anything else is kept as typed (trimmed) rather than discarded.
    """
    s = (value or "").strip()
    if not s:
        return None
    digits = phone_digits(s)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return s


def is_formatted_phone(value: Optional[str]) -> bool:
    return bool(value and FORMATTED_PHONE_RE.match(value))


def clean_state(value: Optional[str], rules: RuleTables = DEFAULT_RULES) -> Optional[str]:
    v = _collapse(value or "").upper()
    if not v:
        return None
    if len(v) == 2 and v in rules.state_codes:
        return v
    return rules.state_names.get(v)


def clean_zip(value: Optional[str], auto_hyphenate: bool = False) -> Optional[str]:
    cleaned = ZIP_STRIP_RE.sub("", value or "")
    if not cleaned:
        return None
    if auto_hyphenate and len(cleaned) == 9 and cleaned.isdigit():
        return f"{cleaned[:5]}-{cleaned[5:]}"
    return cleaned


def clean_percentage(value: Optional[str]) -> Optional[str]:
    s = (value or "").strip()
    if s.endswith("%"):
        s = s[:-1].strip()
    if not s:
        return None
    try:
        number = float(s)
    except ValueError:
        return None
    if not math.isfinite(number) or number < 0 or number > 100:
        return None
    # avoid rendering "-0.00"
    return f"{abs(number):.2f}" if number == 0 else f"{number:.2f}"


def title_case(value: Optional[str]) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in (value or "").split())


def clean_person_or_company_name(value: Optional[str]) -> Optional[str]:
    return title_case(value) or None


def clean_text(value: Optional[str]) -> Optional[str]:
    text = CONTROL_CHARS_RE.sub("", _collapse(value or ""))
    return text.strip() or None


def clean_customer_id(value: Optional[str]) -> Optional[int]:
    s = (value or "").strip()
    try:
        return int(s)
    except ValueError:
        return None


def clean_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in TRUE_TOKENS
