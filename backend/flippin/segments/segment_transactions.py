from __future__ import annotations

from flask import Blueprint, jsonify, request

from flippin.services.registry import get_services
from flippin.utils.auth import require_admin, require_user

transactions_bp = Blueprint("transactions_bp", __name__, url_prefix="/api")
admin_transactions_bp = Blueprint("admin_transactions_bp", __name__, url_prefix="/api/admin")


def _ok(txn):
    return jsonify({"ok": True, "transaction": txn.to_dict()})


@transactions_bp.get("/transactions/<int:transaction_id>")
def get_transaction(transaction_id: int):
    user = require_user()
    lifecycle = get_services().lifecycle
    txn = lifecycle.get(transaction_id)
    lifecycle.require_party(txn, user, parties=("buyer", "seller"), allow_system=False)
    body = {"ok": True, "transaction": txn.to_dict()}
    body["transitions"] = [t.to_dict() for t in lifecycle.transitions(transaction_id)]
    return jsonify(body)


@transactions_bp.post("/transactions/<int:transaction_id>/ship")
def ship(transaction_id: int):
    user = require_user()
    data = request.get_json(silent=True) or {}
    txn = get_services().lifecycle.mark_shipped(
        transaction_id,
        str(data.get("tracking_number") or ""),
        data.get("courier"),
        actor=user,
    )
    return _ok(txn)


@transactions_bp.post("/transactions/<int:transaction_id>/deliver")
def deliver(transaction_id: int):
    user = require_user()
    return _ok(get_services().lifecycle.mark_delivered(transaction_id, actor=user))


@transactions_bp.post("/transactions/<int:transaction_id>/confirm-delivery")
def confirm_delivery(transaction_id: int):
    user = require_user()
    return _ok(get_services().lifecycle.confirm_delivery(transaction_id, actor=user))


@transactions_bp.post("/transactions/<int:transaction_id>/dispute")
def dispute(transaction_id: int):
    user = require_user()
    data = request.get_json(silent=True) or {}
    return _ok(get_services().lifecycle.open_dispute(transaction_id, str(data.get("reason") or ""), actor=user))


@transactions_bp.post("/transactions/<int:transaction_id>/cancel")
def cancel(transaction_id: int):
    user = require_user()
    return _ok(get_services().lifecycle.cancel(transaction_id, actor=user))


@admin_transactions_bp.post("/transactions/<int:transaction_id>/verify-payment")
def verify_payment(transaction_id: int):
    admin = require_admin()
    data = request.get_json(silent=True) or {}
    return _ok(get_services().lifecycle.verify_payment(transaction_id, actor=admin, reference=data.get("reference")))


@admin_transactions_bp.post("/transactions/<int:transaction_id>/refund")
def refund(transaction_id: int):
    admin = require_admin()
    data = request.get_json(silent=True) or {}
    return _ok(get_services().lifecycle.refund(transaction_id, actor=admin, reason=str(data.get("reason") or "refunded")))
