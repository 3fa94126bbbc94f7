"""Drag-and-drop reordering for a reporting dashboard's navigation panel."""

__version__ = "0.3.0"
