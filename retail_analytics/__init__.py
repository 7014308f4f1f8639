"""
Retail Marketing Dashboard API

Reporting backend for the multi-store retail dashboard.
"""

__version__ = "1.0.0"
