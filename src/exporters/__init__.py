"""
Export functionality for Sprout.
"""

from .json_export import export_json, export_json_summary
from .markdown import export_markdown

__all__ = [
    "export_json",
    "export_json_summary",
    "export_markdown",
]
