"""HTTP clients for the persisted store and the live vendor API."""

from vending_core.clients.http import ensure_ok, make_session
from vending_core.clients.store import RestSalesStore, SalesStore
from vending_core.clients.vendor_api import VendorApiClient

__all__ = [
    "RestSalesStore",
    "SalesStore",
    "VendorApiClient",
    "ensure_ok",
    "make_session",
]
