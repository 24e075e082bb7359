"""Daily report persistence and inspector observations."""

from lemrecon.reports.service import ReportService, SavedReport

__all__ = ["ReportService", "SavedReport"]
