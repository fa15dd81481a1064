from datetime import datetime
import json

from flippin.extensions import db
from flippin.models.enums import DeliveryStatus, PaymentStatus, TransactionStatus, TransactionType
from flippin.utils.money import money_str


def live_key_for(listing_id: int, buyer_id: int) -> str:
    return f"{int(listing_id)}:{int(buyer_id)}"


class Transaction(db.Model):
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)

    # Primary listing; a seller-group checkout keeps every listing in line_items.
    listing_id = db.Column(db.Integer, db.ForeignKey("listings.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offers.id"), nullable=True, index=True)
    transaction_type = db.Column(db.String(16), nullable=False, default=TransactionType.MARKETPLACE)
    checkout_ref = db.Column(db.String(64), nullable=True, index=True)

    item_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    platform_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    card_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    seller_receives = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(8), nullable=False)  # EFT | CARD
    payment_reference = db.Column(db.String(120), nullable=True, index=True)

    status = db.Column(db.String(24), nullable=False, default=TransactionStatus.CREATED, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.PENDING)
    delivery_status = db.Column(db.String(16), nullable=False, default=DeliveryStatus.PENDING)

    tracking_number = db.Column(db.String(120), nullable=True)
    courier_name = db.Column(db.String(120), nullable=True)
    dispute_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    paid_at = db.Column(db.DateTime, nullable=True)
    shipped_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    inspection_ends_at = db.Column(db.DateTime, nullable=True, index=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)
    disputed_at = db.Column(db.DateTime, nullable=True)

    line_items = db.relationship(
        "TransactionLineItem",
        backref="transaction",
        order_by="TransactionLineItem.id",
        cascade="all, delete-orphan",
    )
    listing = db.relationship("Listing", foreign_keys=[listing_id])
    seller = db.relationship("User", foreign_keys=[seller_id])
    buyer = db.relationship("User", foreign_keys=[buyer_id])

    @property
    def is_live(self) -> bool:
        return (self.status or "") in TransactionStatus.LIVE

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "listing_id": int(self.listing_id),
            "listing_ids": [int(li.listing_id) for li in self.line_items],
            "seller_id": int(self.seller_id),
            "buyer_id": int(self.buyer_id),
            "offer_id": int(self.offer_id) if self.offer_id else None,
            "transaction_type": self.transaction_type or TransactionType.MARKETPLACE,
            "checkout_ref": self.checkout_ref or "",
            "item_price": money_str(self.item_price),
            "shipping_cost": money_str(self.shipping_cost),
            "total_amount": money_str(self.total_amount),
            "platform_fee": money_str(self.platform_fee),
            "card_fee": money_str(self.card_fee),
            "seller_receives": money_str(self.seller_receives),
            "payment_method": self.payment_method or "",
            "payment_reference": self.payment_reference or "",
            "status": self.status or "",
            "payment_status": self.payment_status or "",
            "delivery_status": self.delivery_status or "",
            "tracking_number": self.tracking_number or "",
            "courier_name": self.courier_name or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "shipped_at": self.shipped_at.isoformat() if self.shipped_at else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "inspection_ends_at": self.inspection_ends_at.isoformat() if self.inspection_ends_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class TransactionLineItem(db.Model):
    __tablename__ = "transaction_line_items"
    __table_args__ = (
        db.UniqueConstraint("live_key", name="uq_transaction_line_items_live_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    listing_id = db.Column(db.Integer, db.ForeignKey("listings.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    item_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # "<listing_id>:<buyer_id>" while the parent transaction is live, NULL after.
    live_key = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "transaction_id": int(self.transaction_id),
            "listing_id": int(self.listing_id),
            "item_price": money_str(self.item_price),
            "shipping_cost": money_str(self.shipping_cost),
        }


class TransactionTransition(db.Model):
    __tablename__ = "transaction_transitions"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "idempotency_key", name="uq_transaction_transition_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    from_status = db.Column(db.String(24), nullable=False, default="")
    to_status = db.Column(db.String(24), nullable=False)
    actor_type = db.Column(db.String(32), nullable=False, default="system")
    actor_id = db.Column(db.Integer, nullable=True)
    idempotency_key = db.Column(db.String(160), nullable=False)
    reason = db.Column(db.String(240), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def metadata_dict(self) -> dict:
        try:
            parsed = json.loads(self.metadata_json or "{}")
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def to_dict(self):
        return {
            "id": int(self.id),
            "transaction_id": int(self.transaction_id),
            "from_status": self.from_status or "",
            "to_status": self.to_status or "",
            "actor_type": self.actor_type or "",
            "actor_id": int(self.actor_id) if self.actor_id is not None else None,
            "reason": self.reason or "",
            "metadata": self.metadata_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
