"""Idempotent AWS provisioning for blizzard load-generator worker fleets."""

__version__ = "0.1.0"
