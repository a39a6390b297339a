"""Helpdesk background-work service."""

__version__ = "1.0.0"
