"""
Report publishing module for eCFR word counts.
"""

from .report_publisher import ReportPublisher, format_report, format_row

__all__ = ["ReportPublisher", "format_report", "format_row"]
