"""Bundled data files: default settings, rarity catalog and JSON schemas."""
