from datetime import datetime

from flippin.extensions import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    # Identity is owned by the external magic-link provider; this row mirrors it.
    auth_subject = db.Column(db.String(128), nullable=True, unique=True, index=True)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    name = db.Column(db.String(120), nullable=False, default="")

    role = db.Column(db.String(32), nullable=False, default="buyer")  # buyer | seller | admin | instant_buyer

    total_sales = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    total_purchases = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_admin(self) -> bool:
        return (self.role or "").strip().lower() == "admin"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name or "",
            "role": self.role or "buyer",
            "total_sales": int(self.total_sales or 0),
            "total_purchases": int(self.total_purchases or 0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
