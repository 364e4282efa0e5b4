"""Configuration discovery, parsing and per-device merging."""
