from datetime import datetime
import json

from flippin.extensions import db
from flippin.models.enums import InstantOfferStatus
from flippin.utils.money import money_str


class InstantBuyer(db.Model):
    __tablename__ = "instant_buyers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    company_name = db.Column(db.String(160), nullable=False, default="")

    # Fraction of market price, e.g. 0.6000 for 60%.
    base_offer = db.Column(db.Numeric(5, 4), nullable=False, default=0.6)
    # JSON object {"GOOD": 1.0, ...}; validated by parse_condition_rules on read.
    condition_rules_json = db.Column(db.Text, nullable=True)
    # JSON array of category ids.
    categories_json = db.Column(db.Text, nullable=False, default="[]")

    active = db.Column(db.Boolean, nullable=False, default=True)
    approved = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User")

    def category_ids(self) -> set[int]:
        try:
            raw = json.loads(self.categories_json or "[]")
        except ValueError:
            return set()
        if not isinstance(raw, list):
            return set()
        out = set()
        for item in raw:
            try:
                out.add(int(item))
            except (TypeError, ValueError):
                continue
        return out

    def set_category_ids(self, ids) -> None:
        self.categories_json = json.dumps(sorted({int(i) for i in ids}))

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "company_name": self.company_name or "",
            "base_offer": str(self.base_offer),
            "category_ids": sorted(self.category_ids()),
            "active": bool(self.active),
            "approved": bool(self.approved),
        }


class InstantOffer(db.Model):
    __tablename__ = "instant_offers"

    id = db.Column(db.Integer, primary_key=True)
    listing_id = db.Column(db.Integer, db.ForeignKey("listings.id"), nullable=False, index=True)
    instant_buyer_id = db.Column(db.Integer, db.ForeignKey("instant_buyers.id"), nullable=False, index=True)

    seller_receives = db.Column(db.Numeric(12, 2), nullable=False)
    buyer_pays = db.Column(db.Numeric(12, 2), nullable=False)
    platform_fee = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=InstantOfferStatus.PENDING, index=True)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    instant_buyer = db.relationship("InstantBuyer")

    def to_dict(self) -> dict:
        buyer = self.instant_buyer
        return {
            "id": int(self.id),
            "listing_id": int(self.listing_id),
            "seller_receives": money_str(self.seller_receives),
            "buyer_pays": money_str(self.buyer_pays),
            "platform_fee": money_str(self.platform_fee),
            "status": self.status or InstantOfferStatus.PENDING,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "buyer": {
                "id": int(buyer.id),
                "company_name": buyer.company_name or "",
            } if buyer is not None else None,
        }
