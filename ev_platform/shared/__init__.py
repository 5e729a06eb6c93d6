# ev_platform/shared/__init__.py
"""Общие схемы событий и DTO, разделяемые сервисами."""
