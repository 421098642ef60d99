"""Swap order router: venue-routed token swaps over a durable job queue."""
