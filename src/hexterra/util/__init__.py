"""Shared utilities: errors, events, constants, geodesy."""
