"""Поиск клиентов: фильтр по тегам, текстовый поиск, сортировка, страницы."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from services.customers.dto import CustomerDTO
from services.errors import StoreError
from services.query_utils import (
    MAX_LIMIT,
    normalize_order,
    normalize_pagination,
    parse_positive_int,
    total_pages,
)
from services.repositories import CUSTOMER_SORT_FIELDS, CustomerRepository, TagRepository
from services.validators import clean_str, parse_uuid

logger = logging.getLogger(__name__)

DEFAULT_SORT = "created_at"
SUGGESTION_LIMIT = 10


@dataclass
class CustomerSearchParams:
    search_text: str | None = None
    customer_type: str | None = None
    customer_class: str | None = None
    tag_ids: Sequence[str] = ()
    page: Any = 1
    limit: Any = 20
    sort_by: str | None = DEFAULT_SORT
    sort_order: str | None = "desc"


@dataclass
class SearchResult:
    data: list[CustomerDTO] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    total_pages: int = 0
    limit: int = 20

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [customer.to_dict() for customer in self.data],
            "totalCount": self.total_count,
            "page": self.page,
            "totalPages": self.total_pages,
            "limit": self.limit,
        }


class CustomerSearchService:
    def __init__(
        self,
        customer_repository: CustomerRepository,
        tag_repository: TagRepository,
    ) -> None:
        self._customers = customer_repository
        self._tags = tag_repository

    def search(self, params: CustomerSearchParams) -> SearchResult:
        """Страница клиентов по фильтрам.

        Теги объединяются по OR: клиент подходит, если у него есть любой
        из указанных тегов. Если ни у кого таких тегов нет, сразу
        возвращается пустая страница.
        """
        page, limit = normalize_pagination(params.page, params.limit)
        sort_by, sort_order = normalize_order(
            params.sort_by, params.sort_order, CUSTOMER_SORT_FIELDS, DEFAULT_SORT
        )

        customer_ids = None
        tag_values = [value for value in params.tag_ids if clean_str(value)]
        if tag_values:
            tag_ids = [uid for uid in map(parse_uuid, tag_values) if uid is not None]
            customer_ids = self._tags.customer_ids_with_any(tag_ids)
            if not customer_ids:
                return SearchResult(page=page, limit=limit)

        customers, total = self._customers.search(
            customer_ids=customer_ids,
            search_text=params.search_text,
            customer_type=clean_str(params.customer_type),
            customer_class=clean_str(params.customer_class),
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
        for customer in customers:
            customer.tags = self._fetch_tags(customer)

        return SearchResult(
            data=customers,
            total_count=total,
            page=page,
            total_pages=total_pages(total, limit),
            limit=limit,
        )

    def _fetch_tags(self, customer: CustomerDTO):
        try:
            return self._tags.tags_for_customer(parse_uuid(customer.id))
        except StoreError:
            logger.error("⚠️ Не удалось получить теги клиента id=%s", customer.id)
            return []

    def list_classes(self) -> list[str]:
        return self._customers.list_classes()

    def suggestions(self, query: str | None, limit: Any = SUGGESTION_LIMIT) -> list[CustomerDTO]:
        text = clean_str(query)
        if not text:
            return []
        size = min(parse_positive_int(limit, SUGGESTION_LIMIT), MAX_LIMIT)
        return self._customers.suggestions(text, size)
