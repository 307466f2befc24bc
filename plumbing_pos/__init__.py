"""Offline inventory and point-of-sale backend for a small plumbing retailer."""

__version__ = "1.0.0"
