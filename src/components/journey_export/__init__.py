"""
Journey export component - CSV export of journey queries.
"""

from .component import export_filename, format_seconds, format_timestamp, render_csv, run_export
from .models import EVENT_HEADER, ExportInput, ExportOutput, ExportValidationError, summary_header

__all__ = [
    # Entry points
    "run_export",
    "render_csv",
    # Models
    "EVENT_HEADER",
    "ExportInput",
    "ExportOutput",
    "ExportValidationError",
    "summary_header",
    # Formatting
    "export_filename",
    "format_seconds",
    "format_timestamp",
]
