"""Reconciliation handlers, one per concern."""
from .base import Handler
from .delete import DeleteHandler
from .dsc import DscHandler
from .gslb import GslbHandler
from .network import NetworkHandler
from .provision import DeprovisionHandler, ProvisionHandler

__all__ = [
    "Handler",
    "DeleteHandler",
    "DscHandler",
    "GslbHandler",
    "NetworkHandler",
    "DeprovisionHandler",
    "ProvisionHandler",
]
