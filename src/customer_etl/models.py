from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .rules import (
    CANONICAL_COLUMNS,
    COLOR_GRADE_COLUMNS,
    WALL_LOSS_COLUMNS,
    WSTRING_COLOR_COLUMNS,
    WSTRING_LOSS_COLUMNS,
)

Slots = Tuple[Optional[str], ...]

EMPTY_SLOTS: Slots = (None, None, None, None, None)


class DuplicateReason(str, Enum):
    EXACT_NAME_MATCH = "exact_name_match"
    SAME_NAME_AND_ADDRESS = "same_name_and_address"
    SAME_NAME_AND_PHONE = "same_name_and_phone"
    SAME_NAME_AND_EMAIL = "same_name_and_email"


@dataclass(frozen=True)
class CustomerRecord:
    customer_name: str
    customer_id: Optional[int] = None
    billing_address: Optional[str] = None
    billing_city: Optional[str] = None
    billing_state: Optional[str] = None
    billing_zip_code: Optional[str] = None
    contact_name: Optional[str] = None
    phone_number: Optional[str] = None
    fax_number: Optional[str] = None
    email_address: Optional[str] = None
    color_grades: Slots = EMPTY_SLOTS
    wall_losses: Slots = EMPTY_SLOTS
    wstring_colors: Slots = EMPTY_SLOTS
    wstring_losses: Slots = EMPTY_SLOTS
    is_deleted: bool = False
    tenant_id: str = ""
    # clustering-only fields, never written downstream
    normalized_name: str = ""
    address_hash: str = ""
    potential_duplicate: bool = False
    source_row: int = 0

    def __post_init__(self) -> None:
        if not self.customer_name:
            raise ValueError("customer_name is required")

    def address_summary(self) -> str:
        parts = [part for part in (self.billing_city, self.billing_state) if part]
        return ", ".join(parts) if parts else "No address"

    def flagged(self) -> "CustomerRecord":
        return replace(self, potential_duplicate=True)

    def to_row(self) -> Dict[str, str]:
        """Flatten to the canonical column order; nulls become empty strings."""
        values: Dict[str, Any] = {
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "billing_address": self.billing_address,
            "billing_city": self.billing_city,
            "billing_state": self.billing_state,
            "billing_zip_code": self.billing_zip_code,
            "contact_name": self.contact_name,
            "phone_number": self.phone_number,
            "fax_number": self.fax_number,
            "email_address": self.email_address,
            "is_deleted": "true" if self.is_deleted else "false",
            "tenant_id": self.tenant_id,
        }
        for columns, slots in (
            (COLOR_GRADE_COLUMNS, self.color_grades),
            (WALL_LOSS_COLUMNS, self.wall_losses),
            (WSTRING_COLOR_COLUMNS, self.wstring_colors),
            (WSTRING_LOSS_COLUMNS, self.wstring_losses),
        ):
            values.update(zip(columns, slots))
        return {
            column: "" if values.get(column) is None else str(values[column])
            for column in CANONICAL_COLUMNS
        }


@dataclass
class DuplicateGroup:
    records: List[CustomerRecord] = field(default_factory=list)
    score: float = 1.0
    reason: DuplicateReason = DuplicateReason.EXACT_NAME_MATCH

    def __len__(self) -> int:
        return len(self.records)

    @property
    def survivor(self) -> CustomerRecord:
        return self.records[0]

    @property
    def duplicates(self) -> List[CustomerRecord]:
        return self.records[1:]
