"""Persistence — on-disk cache for fetched URLs, item state and probe values."""
