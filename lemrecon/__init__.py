"""lemrecon - chainage coverage and field-log reconciliation for pipeline inspection."""

__version__ = "0.1.0"
