"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON logging, dispatch log context
    errors          — exception hierarchy & handlers
    health          — health check aggregation
    database        — async SQLAlchemy engine helpers
    cache           — in-memory / Redis cache backends
"""
