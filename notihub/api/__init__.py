"""HTTP surface: schemas, dependencies and service-level routes."""
