"""Cross-cutting services: logging, audit trail, caching."""
