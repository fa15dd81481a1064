from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from flippin.config import FlippinConfig
from flippin.errors import FlippinError, NotFoundError, StateConflictError, ValidationError
from flippin.extensions import db
from flippin.models import Listing, Offer, Transaction, User
from flippin.models.enums import PaymentMethod
from flippin.services.transaction_lifecycle import CheckoutResult, TransactionLifecycle
from flippin.utils.money import ZERO, money_str, quantize_cents, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class CartCheckoutResult:
    transactions: list[Transaction]
    total_amount: Decimal
    rail_result: dict
    checkout_ref: str
    failed_groups: list[dict] = field(default_factory=list)
    reused_transaction_ids: list[int] = field(default_factory=list)

    @property
    def all_reused(self) -> bool:
        return bool(self.transactions) and len(self.reused_transaction_ids) == len(self.transactions)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "checkout_ref": self.checkout_ref,
            "transactions": [t.to_dict() for t in self.transactions],
            "total_amount": money_str(self.total_amount),
            "payment": self.rail_result,
            "failed_groups": list(self.failed_groups),
            "reused_transaction_ids": list(self.reused_transaction_ids),
        }


def _normalize_ids(raw) -> list[int]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationError("listing_ids must be a non-empty list")
    ids: list[int] = []
    for item in raw:
        try:
            value = int(item)
        except (TypeError, ValueError) as exc:
            raise ValidationError("listing_ids must contain integers") from exc
        if value not in ids:
            ids.append(value)
    return ids


class CheckoutService:
    def __init__(self, lifecycle: TransactionLifecycle, config: FlippinConfig):
        self.lifecycle = lifecycle
        self.config = config

    def checkout_single(
        self,
        buyer: User,
        payment_method,
        *,
        listing_id: int | None = None,
        offer_id: int | None = None,
        card_token: str | None = None,
    ) -> CheckoutResult:
        offer = None
        if offer_id is not None:
            offer = db.session.get(Offer, int(offer_id))
            if offer is None:
                raise NotFoundError("Offer not found")
            listing = offer.listing
            if listing_id is not None and int(listing_id) != int(offer.listing_id):
                raise ValidationError("Offer does not belong to this listing")
        elif listing_id is not None:
            listing = db.session.get(Listing, int(listing_id))
        else:
            raise ValidationError("listing_id or offer_id is required")
        if listing is None:
            raise NotFoundError("Listing not found")
        return self.lifecycle.create_or_reuse(
            [listing],
            buyer,
            payment_method,
            offer=offer,
            card_token=card_token,
        )

    def _preflight(self, ids: list[int], buyer: User) -> list[Listing]:
        listings = Listing.query.filter(Listing.id.in_(ids)).all()
        by_id = {int(l.id): l for l in listings}
        missing = [i for i in ids if i not in by_id]
        if missing:
            raise NotFoundError("Some listings were not found", details={"listing_ids": missing})

        ordered = [by_id[i] for i in ids]
        own = [int(l.id) for l in ordered if int(l.seller_id) == int(buyer.id)]
        if own:
            raise ValidationError("You cannot buy your own listing", details={"listing_ids": own})
        held = self.lifecycle.live_by_listing(ids, int(buyer.id))
        unavailable = [int(l.id) for l in ordered if not l.is_active and int(l.id) not in held]
        if unavailable:
            raise StateConflictError("Some listings are not available", details={"listing_ids": unavailable})
        return ordered

    def checkout_cart(self, listing_ids, buyer: User, payment_method, *, card_token: str | None = None) -> CartCheckoutResult:
        """Split a cart into one transaction per seller.

        Pre-flight is all-or-nothing. After that each seller group commits on
        its own; a failed group is logged and reported without undoing the
        groups that succeeded.
        """
        ids = _normalize_ids(listing_ids)
        method = PaymentMethod.parse(payment_method)
        if method is None:
            raise ValidationError("Payment method must be EFT or CARD")
        if method is PaymentMethod.CARD and not (card_token or "").strip():
            raise ValidationError("card_token is required for card payments")

        groups: dict[int, list[Listing]] = {}
        for listing in self._preflight(ids, buyer):
            groups.setdefault(int(listing.seller_id), []).append(listing)

        checkout_ref = uuid.uuid4().hex
        results: list[CheckoutResult] = []
        failed: list[dict] = []
        first_error: FlippinError | None = None
        for seller_id, group in groups.items():
            # Listings already held come back as their existing transactions;
            # the rest of the group is bought in a new one.
            held = self.lifecycle.live_by_listing([int(l.id) for l in group], int(buyer.id))
            seen: set[int] = set()
            for txn in held.values():
                if int(txn.id) not in seen:
                    seen.add(int(txn.id))
                    results.append(CheckoutResult(transaction=txn, reused=True))
            fresh = [l for l in group if int(l.id) not in held]
            if not fresh:
                continue
            group_ids = [int(l.id) for l in fresh]
            try:
                results.append(
                    self.lifecycle.create_or_reuse(
                        fresh,
                        buyer,
                        method,
                        card_token=card_token,
                        checkout_ref=checkout_ref,
                    )
                )
            except FlippinError as exc:
                first_error = first_error or exc
                logger.warning(
                    "cart_group_failed checkout_ref=%s seller_id=%s listing_ids=%s code=%s",
                    checkout_ref, seller_id, group_ids, exc.code,
                )
                failed.append({"seller_id": seller_id, "listing_ids": group_ids, "error": exc.code, "message": exc.message})
            except Exception:
                db.session.rollback()
                logger.exception("cart_group_error checkout_ref=%s seller_id=%s", checkout_ref, seller_id)
                failed.append({"seller_id": seller_id, "listing_ids": group_ids, "error": "INTERNAL_ERROR", "message": ""})

        if not results and first_error is not None:
            raise first_error
        if not results:
            raise StateConflictError("Checkout failed for every seller", details={"failed_groups": failed})

        transactions = [r.transaction for r in results]
        total = quantize_cents(sum((to_decimal(t.total_amount) for t in transactions), ZERO))
        logger.info(
            "cart_checkout checkout_ref=%s buyer_id=%s transactions=%s failed=%s total=%s",
            checkout_ref, buyer.id, len(transactions), len(failed), total,
        )
        return CartCheckoutResult(
            transactions=transactions,
            total_amount=total,
            rail_result=self._rail_summary(method, transactions, total),
            checkout_ref=checkout_ref,
            failed_groups=failed,
            reused_transaction_ids=[int(r.transaction.id) for r in results if r.reused],
        )

    def _rail_summary(self, method: PaymentMethod, transactions: list[Transaction], total: Decimal) -> dict:
        if method is PaymentMethod.CARD:
            return {"success": True, "transaction_ids": [int(t.id) for t in transactions]}
        return {
            "amount": money_str(total),
            "references": [t.payment_reference for t in transactions],
            "bank_details": self.config.bank.to_dict(),
        }
