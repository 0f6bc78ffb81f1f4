"""Aggregation across sources and views derived from occurrence lists."""
