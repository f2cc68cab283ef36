"""
Figures and Tables
==================

Publication figures (plotting.py) and the Markdown report (report.py).
"""

from .report import (
    check_reported_values,
    format_number,
    format_percent,
    render_report,
    write_report,
)

__all__ = [
    'check_reported_values',
    'format_number',
    'format_percent',
    'render_report',
    'write_report',
]
