from flippin.models.user import User
from flippin.models.listing import Category, Listing
from flippin.models.offer import Offer
from flippin.models.transaction import Transaction, TransactionLineItem, TransactionTransition, live_key_for
from flippin.models.instant_buyer import InstantBuyer, InstantOffer
from flippin.models.platform_event import PlatformEvent
from flippin.models.notification import Notification
from flippin.models.job_run import JobRun

__all__ = [
    "User",
    "Category",
    "Listing",
    "Offer",
    "Transaction",
    "TransactionLineItem",
    "TransactionTransition",
    "live_key_for",
    "InstantBuyer",
    "InstantOffer",
    "PlatformEvent",
    "Notification",
    "JobRun",
]
