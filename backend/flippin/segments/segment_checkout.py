from __future__ import annotations

from flask import Blueprint, jsonify, request

from flippin.errors import ValidationError
from flippin.models.enums import PaymentMethod
from flippin.services.registry import get_services
from flippin.utils.auth import require_user
from flippin.utils.money import money_str

checkout_bp = Blueprint("checkout_bp", __name__, url_prefix="/api")


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body required")
    return data


def _optional_int(data: dict, key: str) -> int | None:
    raw = data.get(key)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be an integer") from exc


@checkout_bp.post("/checkout")
def checkout_single():
    user = require_user()
    data = _payload()
    services = get_services()
    result = services.checkout.checkout_single(
        user,
        data.get("payment_method"),
        listing_id=_optional_int(data, "listing_id"),
        offer_id=_optional_int(data, "offer_id"),
        card_token=data.get("card_token"),
    )
    txn = result.transaction
    body = {"ok": True, **result.to_dict()}
    if txn.payment_method == PaymentMethod.EFT.value and not txn.paid_at:
        body["payment_instructions"] = {
            "amount": money_str(txn.total_amount),
            "reference": txn.payment_reference,
            "bank_details": services.config.bank.to_dict(),
        }
    return jsonify(body), 200 if result.reused else 201


@checkout_bp.post("/checkout/multi")
def checkout_multi():
    user = require_user()
    data = _payload()
    result = get_services().checkout.checkout_cart(
        data.get("listing_ids"),
        user,
        data.get("payment_method"),
        card_token=data.get("card_token"),
    )
    return jsonify(result.to_dict()), 200 if result.all_reused else 201
