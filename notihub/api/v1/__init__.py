"""Versioned routes mounted under /api/v1 (plus /webhooks)."""
