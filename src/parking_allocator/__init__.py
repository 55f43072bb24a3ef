"""Parking spot allocation, billing and entry queue service."""

__version__ = "1.0.0"
