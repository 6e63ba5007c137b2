"""
Fairway client library: customer checkout flow and staff dashboard state
"""
from fairway.client.cart import CartItem, CartStore, FileCartStorage, MemoryCartStorage
from fairway.client.checkout import CheckoutRedirect, CheckoutSessionInitiator
from fairway.client.dashboard import NotificationCounter, OrderBoard
from fairway.client.http import FairwayClient
from fairway.client.realtime import EventKind, OrderEvent, OrderSubscription
from fairway.client.thank_you import OrderLookup, ThankYouSummary

__all__ = [
    "CartItem",
    "CartStore",
    "CheckoutRedirect",
    "CheckoutSessionInitiator",
    "EventKind",
    "FairwayClient",
    "FileCartStorage",
    "MemoryCartStorage",
    "NotificationCounter",
    "OrderBoard",
    "OrderEvent",
    "OrderLookup",
    "OrderSubscription",
    "ThankYouSummary",
]
