"""Appliance inventory configuration."""
from .inventory import ApplianceInventory

__all__ = ["ApplianceInventory"]
