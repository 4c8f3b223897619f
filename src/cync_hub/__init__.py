"""Cync cloud-relay hub: binary TCP protocol engine and device state mapping."""

__version__ = "0.3.0"
