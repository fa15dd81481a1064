from flippin.integrations.payments.base import CardChargeResult, EftInstruction, PaymentRail
from flippin.integrations.payments.factory import build_payment_rail

__all__ = ["CardChargeResult", "EftInstruction", "PaymentRail", "build_payment_rail"]
