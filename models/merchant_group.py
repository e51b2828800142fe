"""Merchant group models."""

from dataclasses import dataclass


@dataclass
class MerchantGroup:
    """A stable cluster representing one real-world merchant.

    Attributes:
        id: Unique identifier (auto-generated).
        display_name: Human readable merchant name, e.g. "Walmart".
    """

    id: int
    display_name: str


@dataclass
class MerchantMapping:
    """Ties one raw description string to a merchant group.

    Attributes:
        id: Unique identifier (auto-generated).
        pattern: Raw transaction description, matched exactly.
        merchant_group_id: Group the description belongs to.
    """

    id: int
    pattern: str
    merchant_group_id: int
