from __future__ import annotations

from enum import Enum


class Condition(str, Enum):
    NEW = "NEW"
    LIKE_NEW = "LIKE_NEW"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"

    @classmethod
    def parse(cls, value) -> "Condition | None":
        """Lenient lookup: accepts enum members, any case, and dashes/spaces.

        Returns None for anything unrecognised instead of raising.
        """
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls(raw)
        except ValueError:
            return None


class PaymentMethod(str, Enum):
    EFT = "EFT"
    CARD = "CARD"

    @classmethod
    def parse(cls, value) -> "PaymentMethod | None":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().upper()
        if raw == "BANK_TRANSFER":
            return cls.EFT
        try:
            return cls(raw)
        except ValueError:
            return None


class ListingStatus:
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    EXPIRED = "EXPIRED"
    REMOVED = "REMOVED"


class OfferStatus:
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    WITHDRAWN = "WITHDRAWN"


class InstantOfferStatus:
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class TransactionStatus:
    CREATED = "CREATED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    INSPECTION_PERIOD = "INSPECTION_PERIOD"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"

    LIVE = frozenset({CREATED, PAYMENT_PENDING, PAID, SHIPPED, DELIVERED, INSPECTION_PERIOD})
    TERMINAL = frozenset({COMPLETED, DISPUTED, CANCELLED, REFUNDED})

    ALLOWED = {
        CREATED: {PAYMENT_PENDING, PAID},
        PAYMENT_PENDING: {PAID, CANCELLED},
        PAID: {SHIPPED, DISPUTED, REFUNDED},
        SHIPPED: {DELIVERED, DISPUTED},
        DELIVERED: {INSPECTION_PERIOD, COMPLETED, DISPUTED},
        INSPECTION_PERIOD: {COMPLETED, DISPUTED},
        COMPLETED: set(),
        DISPUTED: set(),
        CANCELLED: set(),
        REFUNDED: set(),
    }

    @classmethod
    def can_transition(cls, current: str, target: str) -> bool:
        return target in cls.ALLOWED.get(current, set())


class PaymentStatus:
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REFUNDED = "REFUNDED"


class DeliveryStatus:
    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"


class TransactionType:
    MARKETPLACE = "MARKETPLACE"
    OFFER = "OFFER"
