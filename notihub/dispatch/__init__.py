"""
dispatch — Event notification dispatch pipeline.

Sub-modules:
    channels/     — Outbound delivery backends (console, webhook)
    dispatcher    — Core orchestration: dedup, retry, fan-out, persistence handoff
    dedup         — TTL-window duplicate suppression
    retry         — Bounded retry with a fixed delay schedule
    event_store   — Record derivation, persistence and change feed
    storage       — SQLAlchemy-backed events table
    models        — Data structures shared across the pipeline
"""
