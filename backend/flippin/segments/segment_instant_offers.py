from __future__ import annotations

from flask import Blueprint, jsonify, request

from flippin.errors import ForbiddenError, NotFoundError, ValidationError
from flippin.extensions import db
from flippin.models import Listing
from flippin.services.instant_offer_service import generate_instant_offers
from flippin.services.registry import get_services
from flippin.utils.auth import require_user
from flippin.utils.money import to_decimal

instant_offers_bp = Blueprint("instant_offers_bp", __name__, url_prefix="/api")


@instant_offers_bp.post("/listings/<int:listing_id>/instant-offers")
def request_instant_offers(listing_id: int):
    user = require_user()
    listing = db.session.get(Listing, int(listing_id))
    if listing is None:
        raise NotFoundError("Listing not found")
    if int(listing.seller_id) != int(user.id) and not user.is_admin:
        raise ForbiddenError("Only the seller can request instant offers")
    data = request.get_json(silent=True) or {}
    raw_price = data.get("market_price", listing.asking_price)
    try:
        market_price = to_decimal(raw_price)
    except ValueError as exc:
        raise ValidationError("market_price must be a number") from exc
    if market_price < 0:
        raise ValidationError("market_price must be non-negative")
    offers = generate_instant_offers(listing, market_price, config=get_services().config)
    return jsonify({"ok": True, "offers": [o.to_dict() for o in offers]}), 201
