from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, *, minimum: int = 0, maximum: int = 100000) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        value = int(default)
    return max(minimum, min(value, maximum))


def _env_decimal(name: str, default: str) -> Decimal:
    raw = (os.getenv(name) or "").strip()
    try:
        return Decimal(raw) if raw else Decimal(default)
    except InvalidOperation:
        return Decimal(default)


@dataclass(frozen=True)
class FeeSchedule:
    platform_rate: Decimal = Decimal("0.055")
    card_rate: Decimal = Decimal("0.02")
    # Platform fee is waived for item prices at or below this amount.
    free_threshold: Decimal = Decimal("1000")
    instant_fee_rate: Decimal = Decimal("0.05")
    instant_offer_step: int = 50


@dataclass(frozen=True)
class BankDetails:
    bank_name: str = "Flippin Escrow Account"
    account_name: str = "Flippin (Pty) Ltd"
    account_number: str = ""
    branch_code: str = ""

    def to_dict(self) -> dict:
        return {
            "bank_name": self.bank_name,
            "account_name": self.account_name,
            "account_number": self.account_number,
            "branch_code": self.branch_code,
        }


@dataclass(frozen=True)
class FlippinConfig:
    fees: FeeSchedule = field(default_factory=FeeSchedule)
    currency: str = "ZAR"

    offer_min_ratio: Decimal = Decimal("0.5")
    offer_max_ratio: Decimal = Decimal("1.1")
    offer_ttl_hours: int = 48
    instant_offer_ttl_hours: int = 48
    inspection_window_hours: int = 48

    eft_reference_prefix: str = "FLP"
    bank: BankDetails = field(default_factory=BankDetails)

    payments_provider: str = "mock"
    paystack_secret_key: str = ""
    email_provider: str = "mock"
    resend_api_key: str = ""
    email_from: str = "Flippin <hello@flippin.co.za>"
    app_url: str = "http://localhost:3000"

    # inline | celery | off
    notifications_dispatch: str = "inline"

    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = ""
    inspection_release_interval_seconds: int = 300
    offer_expiry_interval_seconds: int = 900
    job_batch_limit: int = 200

    @classmethod
    def from_env(cls) -> "FlippinConfig":
        fees = FeeSchedule(
            platform_rate=_env_decimal("FLIPPIN_PLATFORM_FEE_RATE", "0.055"),
            card_rate=_env_decimal("FLIPPIN_CARD_FEE_RATE", "0.02"),
            free_threshold=_env_decimal("FLIPPIN_PLATFORM_FEE_FREE_THRESHOLD", "1000"),
            instant_fee_rate=_env_decimal("FLIPPIN_INSTANT_FEE_RATE", "0.05"),
            instant_offer_step=_env_int("FLIPPIN_INSTANT_OFFER_STEP", 50, minimum=1),
        )
        bank = BankDetails(
            bank_name=_env_str("PLATFORM_BANK_NAME", "Flippin Escrow Account"),
            account_name=_env_str("PLATFORM_ACCOUNT_NAME", "Flippin (Pty) Ltd"),
            account_number=_env_str("PLATFORM_ACCOUNT_NUMBER"),
            branch_code=_env_str("PLATFORM_BRANCH_CODE"),
        )
        dispatch = _env_str("NOTIFICATIONS_DISPATCH", "inline").lower()
        if dispatch not in ("inline", "celery", "off"):
            dispatch = "inline"
        broker = (
            _env_str("CELERY_BROKER_URL")
            or _env_str("REDIS_URL")
            or "redis://localhost:6379/0"
        )
        return cls(
            fees=fees,
            currency=_env_str("FLIPPIN_CURRENCY", "ZAR").upper(),
            offer_min_ratio=_env_decimal("FLIPPIN_OFFER_MIN_RATIO", "0.5"),
            offer_max_ratio=_env_decimal("FLIPPIN_OFFER_MAX_RATIO", "1.1"),
            offer_ttl_hours=_env_int("FLIPPIN_OFFER_TTL_HOURS", 48, minimum=1),
            instant_offer_ttl_hours=_env_int("FLIPPIN_INSTANT_OFFER_TTL_HOURS", 48, minimum=1),
            inspection_window_hours=_env_int("FLIPPIN_INSPECTION_WINDOW_HOURS", 48, minimum=1),
            eft_reference_prefix=_env_str("FLIPPIN_EFT_REFERENCE_PREFIX", "FLP"),
            bank=bank,
            payments_provider=_env_str("PAYMENTS_PROVIDER", "mock").lower(),
            paystack_secret_key=_env_str("PAYSTACK_SECRET_KEY"),
            email_provider=_env_str("EMAIL_PROVIDER", "mock").lower(),
            resend_api_key=_env_str("RESEND_API_KEY"),
            email_from=_env_str("EMAIL_FROM", "Flippin <hello@flippin.co.za>"),
            app_url=_env_str("APP_URL", "http://localhost:3000").rstrip("/"),
            notifications_dispatch=dispatch,
            celery_broker_url=broker,
            celery_result_backend=_env_str("CELERY_RESULT_BACKEND") or _env_str("REDIS_URL") or broker,
            inspection_release_interval_seconds=_env_int("INSPECTION_RELEASE_INTERVAL_SECONDS", 300, minimum=30),
            offer_expiry_interval_seconds=_env_int("OFFER_EXPIRY_INTERVAL_SECONDS", 900, minimum=30),
            job_batch_limit=_env_int("FLIPPIN_JOB_BATCH_LIMIT", 200, minimum=1, maximum=500),
        )

    def with_overrides(self, **changes) -> "FlippinConfig":
        return replace(self, **changes)


DEFAULT_CONFIG = FlippinConfig()
