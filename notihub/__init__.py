"""
NotiHub — notification dispatch service.

    notihub.dispatch   dedup gate, retry policy, channels, dispatcher, event store
    notihub.adapters   producer payload → Event
    notihub.api        FastAPI routers
    notihub.core       config, logging, errors, cache, database, health
"""

__version__ = "1.0.0"
