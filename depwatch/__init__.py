"""
depwatch - tracks repositories that depend on a toolkit.

Collectors gather dependent repositories from GitHub into a single
repositories table; the dashboard reads it back.
"""

__version__ = "1.0.0"
