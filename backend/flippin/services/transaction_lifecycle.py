"""Transaction lifecycle: idempotent creation and escrow state transitions.

``create_or_reuse`` is the only code path that creates transactions. Every
other operation is a compare-and-set on the transaction's current status,
recorded in ``transaction_transitions``.
"""
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy.exc import IntegrityError

from flippin.config import FlippinConfig
from flippin.errors import (
    ForbiddenError,
    InvalidTransition,
    NotFoundError,
    PaymentRailError,
    StateConflictError,
    ValidationError,
)
from flippin.extensions import db
from flippin.integrations.payments.base import CardChargeResult, EftInstruction, PaymentRail
from flippin.models import (
    Listing,
    Offer,
    Transaction,
    TransactionLineItem,
    TransactionTransition,
    User,
    live_key_for,
)
from flippin.models.enums import (
    DeliveryStatus,
    ListingStatus,
    OfferStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionStatus,
    TransactionType,
)
from flippin.services.fee_calculator import FeeBreakdown, calculate_fees
from flippin.services.notification_service import Notifier
from flippin.utils.events import log_event, safe_json
from flippin.utils.money import ZERO, format_rand, quantize_cents, to_decimal

logger = logging.getLogger(__name__)

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class CheckoutResult:
    transaction: Transaction
    reused: bool = False
    fees: FeeBreakdown | None = None
    eft: EftInstruction | None = None
    card: CardChargeResult | None = None

    @property
    def rail_result(self) -> EftInstruction | CardChargeResult | None:
        return self.eft if self.eft is not None else self.card

    def to_dict(self) -> dict:
        payload = {"transaction": self.transaction.to_dict(), "reused": bool(self.reused)}
        if self.fees is not None:
            payload["fees"] = self.fees.to_dict()
        return payload


@dataclass
class _Charge:
    method: PaymentMethod
    reference: str
    eft: EftInstruction | None = None
    card: CardChargeResult | None = None


class _ListingUnavailable(Exception):
    def __init__(self, listing_id: int):
        super().__init__(f"listing {listing_id} no longer active")
        self.listing_id = listing_id


def _now() -> datetime:
    return datetime.utcnow()


def _parse_actor(actor) -> tuple[str, int | None]:
    if actor is None:
        return "system", None
    if isinstance(actor, User):
        return ("admin" if actor.is_admin else "user"), int(actor.id)
    raise TypeError(f"unsupported actor {actor!r}")


class TransactionLifecycle:
    def __init__(self, config: FlippinConfig, payment_rail: PaymentRail, notifier: Notifier):
        self.config = config
        self.payment_rail = payment_rail
        self.notifier = notifier

    # ------------------------------------------------------------------
    # lookups

    def get(self, transaction_id: int) -> Transaction:
        txn = db.session.get(Transaction, int(transaction_id))
        if txn is None:
            raise NotFoundError("Transaction not found")
        return txn

    def live_by_listing(self, listing_ids: Iterable[int], buyer_id: int) -> dict[int, Transaction]:
        """Map each listing the buyer already holds to its live transaction."""
        keys = {live_key_for(int(lid), int(buyer_id)): int(lid) for lid in listing_ids}
        if not keys:
            return {}
        items = (
            TransactionLineItem.query
            .filter(TransactionLineItem.live_key.in_(list(keys)))
            .order_by(TransactionLineItem.id.asc())
            .all()
        )
        held: dict[int, Transaction] = {}
        for item in items:
            txn = item.transaction
            if txn is not None and txn.is_live:
                held[keys[item.live_key]] = txn
        return held

    def find_reusable(self, listing_ids: Iterable[int], buyer_id: int) -> Transaction | None:
        """Return the live transaction that holds every one of ``listing_ids``.

        None when the buyer holds none of them. Holding only some, or holding
        them across several transactions, is a conflict: reusing would drop
        the rest silently.
        """
        ids = {int(lid) for lid in listing_ids}
        held = self.live_by_listing(ids, buyer_id)
        if not held:
            return None
        txn_ids = sorted({int(t.id) for t in held.values()})
        if len(held) == len(ids) and len(txn_ids) == 1:
            return next(iter(held.values()))
        raise StateConflictError(
            "Some listings are already held by a live transaction",
            code="PARTIALLY_HELD",
            details={"listing_ids": sorted(held), "transaction_ids": txn_ids},
        )

    # ------------------------------------------------------------------
    # creation

    def create_or_reuse(
        self,
        listings: Sequence[Listing],
        buyer: User,
        payment_method,
        *,
        offer: Offer | None = None,
        card_token: str | None = None,
        checkout_ref: str | None = None,
    ) -> CheckoutResult:
        """Return the live transaction for (listings, buyer), creating it if needed.

        Creation charges the payment rail first and then commits the listing
        CAS to SOLD, the transaction, its line items and the offer acceptance
        as one unit. A rail failure leaves nothing behind.
        """
        if buyer is None:
            raise ValidationError("buyer required")
        method = PaymentMethod.parse(payment_method)
        if method is None:
            raise ValidationError("Payment method must be EFT or CARD")
        listings = list(listings or [])
        if not listings:
            raise ValidationError("At least one listing is required")

        listing_ids = [int(l.id) for l in listings]
        existing = self.find_reusable(listing_ids, int(buyer.id))
        if existing is not None:
            logger.info("checkout_reused transaction_id=%s buyer_id=%s", existing.id, buyer.id)
            return CheckoutResult(transaction=existing, reused=True)

        self._validate_purchase(listings, buyer, offer)
        if method is PaymentMethod.CARD and not (card_token or "").strip():
            raise ValidationError("card_token is required for card payments")

        seller_id = int(listings[0].seller_id)
        line_prices = self._line_prices(listings, offer)
        item_price = quantize_cents(sum((price for price, _ in line_prices), ZERO))
        shipping_cost = quantize_cents(sum((ship for _, ship in line_prices), ZERO))
        total_amount = item_price + shipping_cost
        fees = calculate_fees(item_price, method, schedule=self.config.fees)

        charge = self._charge(
            method,
            total_amount,
            card_token=card_token,
            metadata={
                "email": buyer.email,
                "seller_id": str(seller_id),
                "listing_ids": ",".join(str(i) for i in listing_ids),
            },
        )

        try:
            txn = self._persist(
                listings,
                buyer,
                offer=offer,
                charge=charge,
                fees=fees,
                line_prices=line_prices,
                shipping_cost=shipping_cost,
                total_amount=total_amount,
                checkout_ref=checkout_ref,
            )
        except IntegrityError:
            # Lost a race against a concurrent checkout for the same listing and buyer.
            db.session.rollback()
            self._void_charge(charge, reason="duplicate_checkout")
            winner = self.find_reusable(listing_ids, int(buyer.id))
            if winner is not None:
                logger.info("checkout_race_reused transaction_id=%s buyer_id=%s", winner.id, buyer.id)
                return CheckoutResult(transaction=winner, reused=True)
            raise StateConflictError("Listing is not available for purchase")
        except _ListingUnavailable as exc:
            db.session.rollback()
            self._void_charge(charge, reason="listing_unavailable")
            raise StateConflictError(
                "Listing is not available for purchase",
                details={"listing_id": exc.listing_id},
            ) from exc
        except Exception:
            db.session.rollback()
            self._void_charge(charge, reason="persist_failed")
            raise

        logger.info(
            "transaction_created id=%s buyer_id=%s seller_id=%s method=%s total=%s",
            txn.id, buyer.id, seller_id, method.value, total_amount,
        )
        self._notify_created(txn, charge)
        return CheckoutResult(transaction=txn, reused=False, fees=fees, eft=charge.eft, card=charge.card)

    def _validate_purchase(self, listings: Sequence[Listing], buyer: User, offer: Offer | None) -> None:
        seller_ids = {int(l.seller_id) for l in listings}
        if len(seller_ids) != 1:
            raise ValidationError("A transaction covers listings from exactly one seller")
        if int(buyer.id) in seller_ids:
            raise ValidationError("You cannot buy your own listing")
        for listing in listings:
            if not listing.is_active:
                raise StateConflictError(
                    "Listing is not available for purchase",
                    details={"listing_id": int(listing.id), "status": listing.status},
                )
        if offer is None:
            return
        if len(listings) != 1 or int(offer.listing_id) != int(listings[0].id):
            raise ValidationError("Offer does not belong to this listing")
        if int(offer.buyer_id) != int(buyer.id):
            raise ForbiddenError("Offer belongs to another buyer")
        if offer.status != OfferStatus.ACCEPTED:
            raise StateConflictError(
                "Offer must be accepted before checkout",
                details={"offer_id": int(offer.id), "status": offer.status},
            )

    @staticmethod
    def _line_prices(listings: Sequence[Listing], offer: Offer | None) -> list[tuple[Decimal, Decimal]]:
        out = []
        for listing in listings:
            price = to_decimal(offer.amount) if offer is not None else to_decimal(listing.asking_price or 0)
            shipping = to_decimal(listing.shipping_cost) if listing.shipping_cost is not None else ZERO
            out.append((quantize_cents(price), quantize_cents(shipping)))
        return out

    def _eft_reference(self) -> str:
        suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(5))
        return f"{self.config.eft_reference_prefix}{int(_now().timestamp() * 1000)}{suffix}"

    def _charge(self, method: PaymentMethod, amount: Decimal, *, card_token: str | None, metadata: dict) -> _Charge:
        if method is PaymentMethod.EFT:
            reference = self._eft_reference()
            try:
                instruction = self.payment_rail.process_eft(amount, reference)
            except Exception as exc:
                logger.warning("eft_initiation_failed reference=%s err=%s", reference, exc)
                raise PaymentRailError("EFT payment could not be initiated", code="EFT_INIT_FAILED") from exc
            return _Charge(method=method, reference=instruction.reference or reference, eft=instruction)

        try:
            result = self.payment_rail.process_card(amount, card_token or "", metadata)
        except Exception as exc:
            logger.warning("card_charge_error err=%s", exc)
            raise PaymentRailError("Card payment failed", code="CARD_CHARGE_ERROR") from exc
        if not result.success:
            logger.info("card_declined error=%s", result.error)
            raise PaymentRailError(
                "Card payment was declined",
                code="CARD_DECLINED",
                details={"reason": result.error or "declined"},
            )
        return _Charge(method=method, reference=result.transaction_id, card=result)

    def _void_charge(self, charge: _Charge, *, reason: str) -> None:
        if charge.card is None or not charge.card.success:
            return
        try:
            refund = self.payment_rail.refund_card(charge.card.transaction_id, charge.card.amount)
        except Exception:
            refund = None
            logger.exception("card_void_error reference=%s reason=%s", charge.reference, reason)
        if refund is None or not refund.success:
            # Captured money with no transaction behind it: needs manual reconciliation.
            logger.error("card_void_failed reference=%s reason=%s", charge.reference, reason)
            log_event(
                "payment_orphaned",
                subject_type="card_charge",
                subject_id=charge.reference,
                severity="ERROR",
                metadata={"amount": charge.card.amount, "reason": reason},
            )
            db.session.commit()

    def _persist(
        self,
        listings: Sequence[Listing],
        buyer: User,
        *,
        offer: Offer | None,
        charge: _Charge,
        fees: FeeBreakdown,
        line_prices: list[tuple[Decimal, Decimal]],
        shipping_cost: Decimal,
        total_amount: Decimal,
        checkout_ref: str | None,
    ) -> Transaction:
        now = _now()
        for listing in listings:
            rows = (
                Listing.query
                .filter(Listing.id == int(listing.id), Listing.status == ListingStatus.ACTIVE)
                .update({"status": ListingStatus.SOLD, "updated_at": now})
            )
            if rows != 1:
                raise _ListingUnavailable(int(listing.id))

        paid = charge.method is PaymentMethod.CARD
        status = TransactionStatus.PAID if paid else TransactionStatus.PAYMENT_PENDING
        txn = Transaction(
            listing_id=int(listings[0].id),
            seller_id=int(listings[0].seller_id),
            buyer_id=int(buyer.id),
            offer_id=int(offer.id) if offer is not None else None,
            transaction_type=TransactionType.OFFER if offer is not None else TransactionType.MARKETPLACE,
            checkout_ref=checkout_ref,
            item_price=fees.item_price,
            shipping_cost=shipping_cost,
            total_amount=total_amount,
            platform_fee=fees.platform_fee,
            card_fee=fees.card_fee,
            seller_receives=fees.seller_receives,
            payment_method=charge.method.value,
            payment_reference=charge.reference,
            status=status,
            payment_status=PaymentStatus.VERIFIED if paid else PaymentStatus.PENDING,
            delivery_status=DeliveryStatus.PENDING,
            paid_at=now if paid else None,
            created_at=now,
            updated_at=now,
        )
        db.session.add(txn)
        for listing, (price, ship) in zip(listings, line_prices):
            txn.line_items.append(
                TransactionLineItem(
                    listing_id=int(listing.id),
                    buyer_id=int(buyer.id),
                    item_price=price,
                    shipping_cost=ship,
                    live_key=live_key_for(int(listing.id), int(buyer.id)),
                )
            )
        db.session.flush()

        self._record_transition(txn, "", TransactionStatus.CREATED, actor=buyer, reason="checkout")
        self._record_transition(
            txn,
            TransactionStatus.CREATED,
            status,
            actor=buyer,
            reason="card_captured" if paid else "eft_initiated",
            metadata={"payment_reference": charge.reference},
        )
        if offer is not None and offer.status != OfferStatus.ACCEPTED:
            offer.status = OfferStatus.ACCEPTED
            offer.responded_at = offer.responded_at or now
        log_event(
            "transaction_created",
            actor_user_id=int(buyer.id),
            subject_type="transaction",
            subject_id=int(txn.id),
            idempotency_key=f"transaction_created:{int(txn.id)}",
            metadata={
                "listing_ids": [int(l.id) for l in listings],
                "payment_method": charge.method.value,
                "total_amount": total_amount,
            },
        )
        db.session.commit()
        return txn

    def _notify_created(self, txn: Transaction, charge: _Charge) -> None:
        context = self._context(txn)
        if charge.method is PaymentMethod.EFT:
            bank = self.config.bank
            self.notifier.notify(
                "payment_instructions",
                to=txn.buyer.email if txn.buyer else None,
                user_id=int(txn.buyer_id),
                context={
                    **context,
                    "amount": format_rand(txn.total_amount),
                    "reference": txn.payment_reference,
                    "bank_name": bank.bank_name,
                    "account_number": bank.account_number,
                    "branch_code": bank.branch_code,
                },
            )
        else:
            self._notify_paid(txn)

    def _notify_paid(self, txn: Transaction) -> None:
        context = self._context(txn)
        self.notifier.notify(
            "payment_received",
            to=txn.buyer.email if txn.buyer else None,
            user_id=int(txn.buyer_id),
            context={**context, "amount": format_rand(txn.total_amount)},
        )
        self.notifier.notify(
            "item_sold",
            to=txn.seller.email if txn.seller else None,
            user_id=int(txn.seller_id),
            context={**context, "amount": format_rand(txn.seller_receives)},
        )

    @staticmethod
    def _context(txn: Transaction) -> dict:
        listing = txn.listing
        return {
            "transaction_id": int(txn.id),
            "listing_id": int(txn.listing_id),
            "listing_title": listing.title if listing is not None else "",
        }

    # ------------------------------------------------------------------
    # transitions

    def _record_transition(
        self,
        txn: Transaction,
        from_status: str,
        to_status: str,
        *,
        actor=None,
        reason: str = "",
        metadata: dict | None = None,
    ) -> TransactionTransition:
        actor_type, actor_id = _parse_actor(actor)
        row = TransactionTransition(
            transaction_id=int(txn.id),
            from_status=from_status or "",
            to_status=to_status,
            actor_type=actor_type[:32],
            actor_id=actor_id,
            idempotency_key=f"txn:{int(txn.id)}:{from_status or 'NEW'}->{to_status}"[:160],
            reason=(reason or "")[:240],
            metadata_json=safe_json(metadata or {})[:4000],
            created_at=_now(),
        )
        db.session.add(row)
        return row

    def _apply(
        self,
        txn: Transaction,
        target: str,
        *,
        actor=None,
        allowed_from: Iterable[str] | None = None,
        reason: str = "",
        metadata: dict | None = None,
        **fields,
    ) -> None:
        current = txn.status or ""
        allowed = set(allowed_from) if allowed_from is not None else None
        if (allowed is not None and current not in allowed) or not TransactionStatus.can_transition(current, target):
            raise InvalidTransition(current, target)

        values = {"status": target, "updated_at": _now(), **fields}
        rows = (
            Transaction.query
            .filter(Transaction.id == int(txn.id), Transaction.status == current)
            .update(values)
        )
        if rows != 1:
            db.session.rollback()
            db.session.refresh(txn)
            raise InvalidTransition(txn.status or "", target)

        self._record_transition(txn, current, target, actor=actor, reason=reason, metadata=metadata)
        if target in TransactionStatus.TERMINAL:
            (
                TransactionLineItem.query
                .filter(TransactionLineItem.transaction_id == int(txn.id))
                .update({"live_key": None})
            )

    @staticmethod
    def require_party(txn: Transaction, actor, *, parties: tuple[str, ...], allow_system: bool = True) -> None:
        if actor is None:
            if allow_system:
                return
            raise ForbiddenError("Authentication required")
        if actor.is_admin:
            return
        if "buyer" in parties and int(actor.id) == int(txn.buyer_id):
            return
        if "seller" in parties and int(actor.id) == int(txn.seller_id):
            return
        raise ForbiddenError("You are not a party to this transaction")

    def _relist(self, txn: Transaction) -> None:
        listing_ids = [int(li.listing_id) for li in txn.line_items] or [int(txn.listing_id)]
        (
            Listing.query
            .filter(Listing.id.in_(listing_ids), Listing.status == ListingStatus.SOLD)
            .update({"status": ListingStatus.ACTIVE, "updated_at": _now()})
        )

    def verify_payment(self, transaction_id: int, *, actor=None, reference: str | None = None) -> Transaction:
        """Confirm a manual EFT has landed in the escrow account."""
        txn = self.get(transaction_id)
        self.require_party(txn, actor, parties=())
        now = _now()
        self._apply(
            txn,
            TransactionStatus.PAID,
            actor=actor,
            allowed_from=(TransactionStatus.PAYMENT_PENDING,),
            reason="eft_verified",
            metadata={"reference": reference or txn.payment_reference},
            payment_status=PaymentStatus.VERIFIED,
            paid_at=now,
        )
        log_event(
            "payment_verified",
            actor_user_id=_parse_actor(actor)[1],
            subject_type="transaction",
            subject_id=int(txn.id),
            idempotency_key=f"payment_verified:{int(txn.id)}",
        )
        db.session.commit()
        self._notify_paid(txn)
        return txn

    def mark_shipped(self, transaction_id: int, tracking_number: str, courier: str | None = None, *, actor=None) -> Transaction:
        tracking = (tracking_number or "").strip()
        if not tracking:
            raise ValidationError("Tracking number is required")
        txn = self.get(transaction_id)
        self.require_party(txn, actor, parties=("seller",))
        self._apply(
            txn,
            TransactionStatus.SHIPPED,
            actor=actor,
            allowed_from=(TransactionStatus.PAID,),
            reason="shipped",
            metadata={"tracking_number": tracking, "courier": courier or ""},
            delivery_status=DeliveryStatus.SHIPPED,
            tracking_number=tracking[:120],
            courier_name=(courier or "").strip()[:120] or None,
            shipped_at=_now(),
        )
        db.session.commit()
        self.notifier.notify(
            "item_shipped",
            to=txn.buyer.email if txn.buyer else None,
            user_id=int(txn.buyer_id),
            context={
                **self._context(txn),
                "tracking_number": txn.tracking_number or "",
                "courier_name": txn.courier_name or "",
            },
        )
        return txn

    def mark_delivered(self, transaction_id: int, *, actor=None, delivered_at: datetime | None = None) -> Transaction:
        """Record delivery and open the buyer's inspection window."""
        txn = self.get(transaction_id)
        self.require_party(txn, actor, parties=("seller",))
        stamp = delivered_at or _now()
        window = timedelta(hours=int(self.config.inspection_window_hours))
        self._apply(
            txn,
            TransactionStatus.DELIVERED,
            actor=actor,
            allowed_from=(TransactionStatus.SHIPPED,),
            reason="delivered",
            delivery_status=DeliveryStatus.DELIVERED,
            delivered_at=stamp,
        )
        self._apply(
            txn,
            TransactionStatus.INSPECTION_PERIOD,
            actor=actor,
            reason="inspection_started",
            metadata={"inspection_hours": int(self.config.inspection_window_hours)},
            inspection_ends_at=stamp + window,
        )
        db.session.commit()
        self.notifier.notify(
            "item_delivered",
            to=txn.buyer.email if txn.buyer else None,
            user_id=int(txn.buyer_id),
            context={**self._context(txn), "inspection_hours": int(self.config.inspection_window_hours)},
        )
        return txn

    def confirm_delivery(self, transaction_id: int, *, actor=None, reason: str = "buyer_confirmed") -> Transaction:
        """Complete the sale and release the escrowed payout to the seller."""
        txn = self.get(transaction_id)
        self.require_party(txn, actor, parties=("buyer",))
        self._apply(
            txn,
            TransactionStatus.COMPLETED,
            actor=actor,
            allowed_from=(TransactionStatus.DELIVERED, TransactionStatus.INSPECTION_PERIOD),
            reason=reason,
            completed_at=_now(),
        )
        User.query.filter(User.id == int(txn.seller_id)).update({"total_sales": User.total_sales + 1})
        User.query.filter(User.id == int(txn.buyer_id)).update({"total_purchases": User.total_purchases + 1})
        log_event(
            "payout_released",
            actor_user_id=_parse_actor(actor)[1],
            subject_type="transaction",
            subject_id=int(txn.id),
            idempotency_key=f"payout_released:{int(txn.id)}",
            metadata={"seller_id": int(txn.seller_id), "amount": txn.seller_receives, "reason": reason},
        )
        db.session.commit()
        self.notifier.notify(
            "payout_released",
            to=txn.seller.email if txn.seller else None,
            user_id=int(txn.seller_id),
            context={**self._context(txn), "amount": format_rand(txn.seller_receives)},
        )
        return txn

    def open_dispute(self, transaction_id: int, reason: str, *, actor=None) -> Transaction:
        text = (reason or "").strip()
        if not text:
            raise ValidationError("A dispute reason is required")
        txn = self.get(transaction_id)
        self.require_party(txn, actor, parties=("buyer",))
        in_inspection = txn.status in (TransactionStatus.DELIVERED, TransactionStatus.INSPECTION_PERIOD)
        buyer_acting = actor is not None and not actor.is_admin
        if in_inspection and buyer_acting and txn.inspection_ends_at and _now() > txn.inspection_ends_at:
            raise StateConflictError("The inspection window has closed", code="INSPECTION_WINDOW_CLOSED")
        self._apply(
            txn,
            TransactionStatus.DISPUTED,
            actor=actor,
            reason="disputed",
            metadata={"reason": text[:240]},
            dispute_reason=text[:500],
            disputed_at=_now(),
        )
        log_event(
            "transaction_disputed",
            actor_user_id=_parse_actor(actor)[1],
            subject_type="transaction",
            subject_id=int(txn.id),
            severity="WARN",
            idempotency_key=f"transaction_disputed:{int(txn.id)}",
            metadata={"reason": text[:240]},
        )
        db.session.commit()
        return txn

    def cancel(self, transaction_id: int, *, actor=None, reason: str = "cancelled") -> Transaction:
        """Cancel an unpaid EFT checkout and put its listings back on sale."""
        txn = self.get(transaction_id)
        self.require_party(txn, actor, parties=("buyer",))
        self._apply(
            txn,
            TransactionStatus.CANCELLED,
            actor=actor,
            allowed_from=(TransactionStatus.PAYMENT_PENDING,),
            reason=reason,
            cancelled_at=_now(),
        )
        self._relist(txn)
        db.session.commit()
        return txn

    def refund(self, transaction_id: int, *, actor=None, reason: str = "refunded") -> Transaction:
        """Return a paid, unshipped purchase's money to the buyer."""
        txn = self.get(transaction_id)
        self.require_party(txn, actor, parties=())
        if txn.status != TransactionStatus.PAID:
            raise InvalidTransition(txn.status or "", TransactionStatus.REFUNDED)
        if txn.payment_method == PaymentMethod.CARD.value:
            try:
                result = self.payment_rail.refund_card(txn.payment_reference or "", to_decimal(txn.total_amount))
            except Exception as exc:
                raise PaymentRailError("Card refund failed", code="REFUND_FAILED") from exc
            if not result.success:
                raise PaymentRailError("Card refund failed", code="REFUND_FAILED", details={"reason": result.error})
        self._apply(
            txn,
            TransactionStatus.REFUNDED,
            actor=actor,
            allowed_from=(TransactionStatus.PAID,),
            reason=reason,
            payment_status=PaymentStatus.REFUNDED,
            refunded_at=_now(),
        )
        self._relist(txn)
        db.session.commit()
        return txn

    def transitions(self, transaction_id: int) -> list[TransactionTransition]:
        return (
            TransactionTransition.query
            .filter_by(transaction_id=int(transaction_id))
            .order_by(TransactionTransition.id.asc())
            .all()
        )


__all__ = [
    "CheckoutResult",
    "TransactionLifecycle",
]
