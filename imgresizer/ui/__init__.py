"""
UI Module - User Interface Components
=====================================
PyQt6 window for browsing, previewing and saving images.
"""

from .main_window import MainWindow, ImagePane

__all__ = [
    "ImagePane",
    "MainWindow",
]
