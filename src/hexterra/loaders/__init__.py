"""Loaders: configuration and region payload parsing."""
