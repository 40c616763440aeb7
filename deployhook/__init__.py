"""Webhook-driven deployment coordinator."""

__version__ = "0.1.0"
