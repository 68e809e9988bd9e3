"""Hex-tile ownership and territory economy for a location-based exploration game."""

__version__ = "0.1.0"
