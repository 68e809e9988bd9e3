"""Domain models: cells, tiles, regions, purchases, snapshots."""
