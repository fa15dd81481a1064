from datetime import datetime

from flippin.extensions import db
from flippin.models.enums import OfferStatus
from flippin.utils.money import money_str


class Offer(db.Model):
    __tablename__ = "offers"

    id = db.Column(db.Integer, primary_key=True)
    listing_id = db.Column(db.Integer, db.ForeignKey("listings.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    message = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=OfferStatus.PENDING, index=True)

    # Set on seller counter-offers: the offer this one replaced.
    countered_from_id = db.Column(db.Integer, db.ForeignKey("offers.id"), nullable=True)

    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    responded_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    listing = db.relationship("Listing")
    buyer = db.relationship("User", foreign_keys=[buyer_id])

    def is_expired(self, now: datetime | None = None) -> bool:
        if not self.expires_at:
            return False
        return (now or datetime.utcnow()) >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "listing_id": int(self.listing_id),
            "buyer_id": int(self.buyer_id),
            "amount": money_str(self.amount),
            "message": self.message or "",
            "status": self.status or OfferStatus.PENDING,
            "countered_from_id": int(self.countered_from_id) if self.countered_from_id else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
