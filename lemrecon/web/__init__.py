"""HTTP API for lemrecon."""
