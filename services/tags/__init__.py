"""Теги клиентов."""

from .tag_service import CustomerTagService, TagService, validate_tag_name

__all__ = ["CustomerTagService", "TagService", "validate_tag_name"]
