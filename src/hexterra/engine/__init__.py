"""Engine services: spatial index, tile store, regions, purchases, view sync."""
