"""Bundled node packs."""
