"""Ride-request matching and fulfillment service."""

__version__ = "0.1.0"
