"""Realtime notification hub and live chat client for the repair shop portal."""

__version__ = "0.1.0"
