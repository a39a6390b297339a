"""Helpdesk CLI - job system administration from the terminal"""

__version__ = "1.0.0"
