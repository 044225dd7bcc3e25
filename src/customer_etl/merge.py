from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

from .models import CustomerRecord
from .normalization import phone_digits

NAME_WEIGHT = 0.4
ADDRESS_WEIGHT = 0.3
PHONE_WEIGHT = 0.2
EMAIL_WEIGHT = 0.1


def address_fingerprint(
    address: Optional[str], city: Optional[str], state: Optional[str]
) -> str:
    """
    Coarse "same address" key: md5 of address+city+state, lowercased with
    spaces removed, truncated to 8 hex characters. Empty when all are absent.
    """
    if not (address or city or state):
        return ""
    material = "".join(part or "" for part in (address, city, state))
    material = material.lower().replace(" ", "")
    return hashlib.md5(material.encode("utf-8")).hexdigest()[:8]


@dataclass(frozen=True)
class SimilaritySignals:
    score: float
    name_match: bool
    address_match: bool
    phone_match: bool
    email_match: bool


class SimilarityScorer:
    """Weighted all-or-nothing comparison on name, address, phone and email."""

    def compute(self, a: CustomerRecord, b: CustomerRecord) -> SimilaritySignals:
        name_match = a.normalized_name == b.normalized_name
        address_match = bool(a.address_hash) and a.address_hash == b.address_hash
        phone_match = self.phone_match(a, b)
        email_match = self.email_match(a, b)

        score = 0.0
        if name_match:
            score += NAME_WEIGHT
        if address_match:
            score += ADDRESS_WEIGHT
        if phone_match:
            score += PHONE_WEIGHT
        if email_match:
            score += EMAIL_WEIGHT

        return SimilaritySignals(
            score=round(score, 6),
            name_match=name_match,
            address_match=address_match,
            phone_match=phone_match,
            email_match=email_match,
        )

    def similarity(self, a: CustomerRecord, b: CustomerRecord) -> float:
        return self.compute(a, b).score

    @staticmethod
    def phone_match(a: CustomerRecord, b: CustomerRecord) -> bool:
        left = phone_digits(a.phone_number)
        return bool(left) and left == phone_digits(b.phone_number)

    @staticmethod
    def email_match(a: CustomerRecord, b: CustomerRecord) -> bool:
        if not (a.email_address and b.email_address):
            return False
        return a.email_address.lower() == b.email_address.lower()
