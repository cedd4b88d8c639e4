"""Adapters for the store, change feed and web view."""
