from datetime import datetime

from flippin.extensions import db
from flippin.models.enums import ListingStatus
from flippin.utils.money import money_str


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False, unique=True, index=True)

    def to_dict(self) -> dict:
        return {"id": int(self.id), "name": self.name or ""}


class Listing(db.Model):
    __tablename__ = "listings"
    __table_args__ = (
        db.CheckConstraint("asking_price >= 0", name="ck_listings_asking_price_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    title = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(24), nullable=False, default=ListingStatus.DRAFT, index=True)
    condition = db.Column(db.String(16), nullable=False, default="GOOD")

    asking_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    seller = db.relationship("User", foreign_keys=[seller_id])
    category = db.relationship("Category")

    @property
    def is_active(self) -> bool:
        return (self.status or "") == ListingStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "seller_id": int(self.seller_id),
            "category_id": int(self.category_id) if self.category_id is not None else None,
            "title": self.title or "",
            "status": self.status or ListingStatus.DRAFT,
            "condition": self.condition or "",
            "asking_price": money_str(self.asking_price),
            "shipping_cost": money_str(self.shipping_cost) if self.shipping_cost is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
