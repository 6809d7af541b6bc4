"""Webhook registry, hook events, dispatch and the HTTP surface."""
