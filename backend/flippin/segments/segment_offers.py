from __future__ import annotations

from flask import Blueprint, jsonify, request

from flippin.errors import NotFoundError, ValidationError
from flippin.extensions import db
from flippin.models import Listing
from flippin.services.offer_service import ACCEPT, REJECT
from flippin.services.registry import get_services
from flippin.utils.auth import require_user

offers_bp = Blueprint("offers_bp", __name__, url_prefix="/api")


@offers_bp.post("/offers")
def create_offer():
    user = require_user()
    data = request.get_json(silent=True) or {}
    try:
        listing_id = int(data.get("listing_id"))
    except (TypeError, ValueError) as exc:
        raise ValidationError("listing_id is required") from exc
    listing = db.session.get(Listing, listing_id)
    if listing is None:
        raise NotFoundError("Listing not found")
    if data.get("amount") in (None, ""):
        raise ValidationError("amount is required")
    offer = get_services().offers.create_offer(listing, user, data.get("amount"), data.get("message"))
    return jsonify({"ok": True, "offer": offer.to_dict()}), 201


@offers_bp.post("/offers/<int:offer_id>/accept")
def accept_offer(offer_id: int):
    user = require_user()
    offers = get_services().offers
    offer = offers.respond_to_offer(offers.get(offer_id), ACCEPT, actor=user)
    return jsonify({"ok": True, "offer": offer.to_dict()})


@offers_bp.post("/offers/<int:offer_id>/reject")
def reject_offer(offer_id: int):
    user = require_user()
    offers = get_services().offers
    offer = offers.respond_to_offer(offers.get(offer_id), REJECT, actor=user)
    return jsonify({"ok": True, "offer": offer.to_dict()})


@offers_bp.post("/offers/<int:offer_id>/counter")
def counter_offer(offer_id: int):
    user = require_user()
    data = request.get_json(silent=True) or {}
    if data.get("amount") in (None, ""):
        raise ValidationError("amount is required")
    offers = get_services().offers
    counter = offers.counter_offer(offers.get(offer_id), data.get("amount"), data.get("message"), actor=user)
    return jsonify({"ok": True, "offer": counter.to_dict()}), 201


@offers_bp.post("/offers/<int:offer_id>/withdraw")
def withdraw_offer(offer_id: int):
    user = require_user()
    offers = get_services().offers
    offer = offers.withdraw_offer(offers.get(offer_id), actor=user)
    return jsonify({"ok": True, "offer": offer.to_dict()})
