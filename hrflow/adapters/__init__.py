"""Adapters: storage, notification and web implementations of the ports."""
