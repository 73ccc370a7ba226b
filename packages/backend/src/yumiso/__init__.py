"""Yumiso — recipe management and weekly meal planning.

This package is the backend core: live collaboration on shopping lists
(server-sent events) and buffered recipe view counting, behind a small
FastAPI surface.
"""

__version__ = "0.1.0"
