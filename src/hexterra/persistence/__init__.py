"""Persistence: region data sources and tile snapshot stores."""
