from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str


_TEMPLATES = {
    "offer_received": (
        "💰 New offer on \"{listing_title}\"",
        "{buyer_name} offered {amount} for \"{listing_title}\".\n\n"
        "The offer expires in 48 hours. Respond here: {app_url}/dashboard/offers",
    ),
    "offer_accepted": (
        "🎉 Your offer on \"{listing_title}\" was accepted",
        "The seller accepted your offer of {amount}.\n\n"
        "Complete checkout here: {app_url}/listing/{listing_id}",
    ),
    "offer_rejected": (
        "Your offer on \"{listing_title}\" was declined",
        "The seller declined your offer of {amount}. You can make a new one: {app_url}/listing/{listing_id}",
    ),
    "offer_countered": (
        "↔️ Counter-offer on \"{listing_title}\"",
        "The seller countered with {amount}. Respond here: {app_url}/dashboard/offers",
    ),
    "payment_instructions": (
        "💳 Payment instructions for \"{listing_title}\"",
        "Total: {amount}\nReference: {reference}\n\n"
        "Bank: {bank_name}\nAccount: {account_number}\nBranch: {branch_code}\n\n"
        "Your money is held in escrow until you confirm delivery.\n"
        "{app_url}/dashboard/transactions/{transaction_id}",
    ),
    "payment_received": (
        "✅ Payment successful for \"{listing_title}\"",
        "We received {amount}. The seller has been asked to ship.\n"
        "{app_url}/dashboard/transactions/{transaction_id}",
    ),
    "item_sold": (
        "🎉 \"{listing_title}\" sold",
        "Ship as soon as payment is verified. You will receive {amount} once the buyer confirms delivery.\n"
        "{app_url}/dashboard/transactions/{transaction_id}",
    ),
    "item_shipped": (
        "📦 \"{listing_title}\" is on its way",
        "Tracking number: {tracking_number}\nCourier: {courier_name}\n"
        "{app_url}/dashboard/transactions/{transaction_id}",
    ),
    "item_delivered": (
        "📬 \"{listing_title}\" was delivered",
        "You have {inspection_hours} hours to inspect the item. Confirm delivery or open a dispute here: "
        "{app_url}/dashboard/transactions/{transaction_id}",
    ),
    "payout_released": (
        "💸 Payment released for \"{listing_title}\"",
        "The buyer's inspection is complete. {amount} is on its way to your bank account.",
    ),
}


class _Defaults(dict):
    def __missing__(self, key):
        return ""


def render(kind: str, context: dict) -> RenderedEmail:
    try:
        subject, text = _TEMPLATES[kind]
    except KeyError as exc:
        raise ValueError(f"unknown email template {kind!r}") from exc
    values = _Defaults(context or {})
    return RenderedEmail(subject=subject.format_map(values), text=text.format_map(values))
