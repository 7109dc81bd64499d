"""Serving layer: single-flight cache, replay store and HTTP API."""
