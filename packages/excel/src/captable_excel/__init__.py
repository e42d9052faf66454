"""Excel export of cap table views."""

from .workbook_renderer import CapTableWorkbookRenderer

__all__ = ["CapTableWorkbookRenderer"]
