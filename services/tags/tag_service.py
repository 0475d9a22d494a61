"""Теги: CRUD, статистика использования и привязка к клиентам."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Sequence

from services.customers.customer_service import CUSTOMER_NOT_FOUND, require_existing_tags
from services.customers.dto import TagDTO, TagUsageDTO
from services.errors import ConflictError, NotFoundError, ValidationError
from services.repositories import CustomerRepository, TagRepository
from services.validators import parse_uuid

logger = logging.getLogger(__name__)

TAG_NAME_MAX_LENGTH = 50
TAG_NOT_FOUND = "タグが見つかりません"
TAG_EXISTS = "このタグ名は既に存在します"


def validate_tag_name(name: Any) -> str:
    text = str(name).strip() if name is not None else ""
    if not text:
        raise ValidationError("タグ名は必須です")
    if len(text) > TAG_NAME_MAX_LENGTH:
        raise ValidationError(f"タグ名は{TAG_NAME_MAX_LENGTH}文字以内で入力してください")
    return text


@dataclass
class TagStats:
    tags: list[TagUsageDTO]

    @property
    def total_usage(self) -> int:
        return sum(tag.usage_count for tag in self.tags)

    def to_dict(self) -> dict[str, Any]:
        total_tags = len(self.tags)
        used = [tag for tag in self.tags if tag.usage_count > 0]
        by_usage = sorted(self.tags, key=lambda t: (-t.usage_count, t.name))
        return {
            "tags": [tag.to_dict() for tag in self.tags],
            "tags_by_usage": [tag.to_dict() for tag in by_usage],
            "statistics": {
                "total_tags": total_tags,
                "total_usage": self.total_usage,
                "average_usage": round(self.total_usage / total_tags, 2) if total_tags else 0,
                "unused_tags": total_tags - len(used),
                "most_used_tag": by_usage[0].to_dict() if used else None,
                "least_used_tag": by_usage[-1].to_dict() if by_usage else None,
            },
        }


class TagService:
    def __init__(self, tag_repository: TagRepository) -> None:
        self._tags = tag_repository

    def _require_id(self, tag_id: Any) -> uuid.UUID:
        parsed = parse_uuid(tag_id)
        if parsed is None:
            raise NotFoundError(TAG_NOT_FOUND)
        return parsed

    def list(self) -> list[TagDTO]:
        return self._tags.list_all()

    def get(self, tag_id: Any) -> TagDTO:
        tag = self._tags.get(self._require_id(tag_id))
        if tag is None:
            raise NotFoundError(TAG_NOT_FOUND)
        return tag

    def create(self, name: Any) -> TagDTO:
        text = validate_tag_name(name)
        if self._tags.find_by_name(text):
            raise ConflictError(TAG_EXISTS)
        tag = self._tags.create(text)
        logger.info("✅ Тег id=%s «%s» создан", tag.id, tag.name)
        return tag

    def rename(self, tag_id: Any, name: Any) -> TagDTO:
        uid = self._require_id(tag_id)
        text = validate_tag_name(name)
        if self._tags.get(uid) is None:
            raise NotFoundError(TAG_NOT_FOUND)
        if self._tags.find_by_name(text, exclude_id=uid):
            raise ConflictError(TAG_EXISTS)
        tag = self._tags.rename(uid, text)
        if tag is None:
            raise NotFoundError(TAG_NOT_FOUND)
        logger.info("✏️ Тег id=%s переименован в «%s»", uid, text)
        return tag

    def delete(self, tag_id: Any) -> int:
        """Удаляет тег вместе со связями, возвращает число отвязанных клиентов."""
        uid = self._require_id(tag_id)
        if self._tags.get(uid) is None:
            raise NotFoundError(TAG_NOT_FOUND)
        detached = self._tags.delete_with_links(uid)
        logger.info("🗑 Тег id=%s удалён, отвязано клиентов: %s", uid, detached)
        return detached

    def stats(self) -> TagStats:
        return TagStats(tags=self._tags.usage())

    def create_or_find(self, names: Sequence[str]) -> list[TagDTO]:
        """Находит теги по именам, недостающие создаёт.

        Пустые и слишком длинные имена пропускаются, порядок сохраняется.
        """
        cleaned: list[str] = []
        for name in names:
            text = (name or "").strip()
            if text and len(text) <= TAG_NAME_MAX_LENGTH and text not in cleaned:
                cleaned.append(text)
        if not cleaned:
            return []

        found = {tag.name: tag for tag in self._tags.find_by_names(cleaned)}
        result: list[TagDTO] = []
        for text in cleaned:
            tag = found.get(text)
            if tag is None:
                try:
                    tag = self._tags.create(text)
                    logger.info("✅ Тег «%s» создан при импорте", text)
                except ConflictError:
                    tag = self._tags.find_by_name(text)
                    if tag is None:
                        raise
            result.append(tag)
        return result


class CustomerTagService:
    """Привязка тегов к клиенту: замена, добавление, удаление."""

    def __init__(
        self,
        customer_repository: CustomerRepository,
        tag_repository: TagRepository,
    ) -> None:
        self._customers = customer_repository
        self._tags = tag_repository

    def _require_customer(self, customer_id: Any) -> uuid.UUID:
        uid = parse_uuid(customer_id)
        if uid is None or not self._customers.exists(uid):
            raise NotFoundError(CUSTOMER_NOT_FOUND)
        return uid

    def list(self, customer_id: Any) -> list[TagDTO]:
        uid = self._require_customer(customer_id)
        return self._tags.tags_for_customer(uid)

    def replace(self, customer_id: Any, tag_ids: Sequence[Any]) -> list[TagDTO]:
        """Делает набор тегов клиента равным ``tag_ids``; повтор ничего не меняет."""
        uid = self._require_customer(customer_id)
        valid = require_existing_tags(self._tags, tag_ids)
        self._tags.replace_customer_tags(uid, valid)
        logger.info("🏷 Теги клиента id=%s заменены (%s шт.)", uid, len(set(valid)))
        return self._tags.tags_for_customer(uid)

    def add(self, customer_id: Any, tag_ids: Sequence[Any]) -> tuple[list[TagDTO], int]:
        """Добавляет недостающие теги; возвращает итоговый список и число добавленных."""
        uid = self._require_customer(customer_id)
        if not tag_ids:
            raise ValidationError("追加するタグIDを指定してください")
        valid = require_existing_tags(self._tags, tag_ids)
        attached = self._tags.attached_ids(uid)
        new_ids = [tag_id for tag_id in dict.fromkeys(valid) if tag_id not in attached]
        if not new_ids:
            raise ConflictError("指定されたタグは既に関連付けられています")
        self._tags.add_customer_tags(uid, new_ids)
        logger.info("🏷 Клиенту id=%s добавлено тегов: %s", uid, len(new_ids))
        return self._tags.tags_for_customer(uid), len(new_ids)

    def remove(self, customer_id: Any, tag_id: Any) -> list[TagDTO]:
        uid = self._require_customer(customer_id)
        tag_uid = parse_uuid(tag_id)
        if tag_uid is None or not self._tags.remove_customer_tag(uid, tag_uid):
            raise NotFoundError("指定されたタグは関連付けられていません")
        logger.info("🏷 У клиента id=%s снят тег id=%s", uid, tag_uid)
        return self._tags.tags_for_customer(uid)
