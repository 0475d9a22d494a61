"""Репозитории клиентов и тегов поверх peewee.

Наружу отдаются только DTO; ошибки хранилища заворачиваются в
:class:`services.errors.StoreError` с указанием операции.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterable, Iterator, Sequence

from peewee import JOIN, IntegrityError, PeeweeException, fn

from database.db import db
from database.models import Customer, CustomerTag, Tag
from services.customers.dto import CustomerDTO, TagDTO, TagUsageDTO
from services.errors import ConflictError, StoreError
from services.query_utils import (
    apply_exact_filters,
    apply_order,
    apply_text_search,
    icontains,
    paginate,
)
from utils.time_utils import utc_now

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(context: str) -> Iterator[None]:
    """Переводит исключения peewee в :class:`StoreError`."""
    try:
        yield
    except PeeweeException as exc:
        logger.exception("❌ Ошибка хранилища при операции «%s»", context)
        raise StoreError(str(exc), context=context) from exc


def _unique(ids: Iterable[uuid.UUID]) -> list[uuid.UUID]:
    seen: set[uuid.UUID] = set()
    result = []
    for value in ids:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


CUSTOMER_TEXT_FIELDS = (Customer.name, Customer.company_name, Customer.email, Customer.phone)

CUSTOMER_SORT_FIELDS = {
    "name": Customer.name,
    "name_kana": Customer.name_kana,
    "created_at": Customer.created_at,
    "updated_at": Customer.updated_at,
}


class CustomerRepository:
    """Работа с клиентами в базе данных."""

    def _active_query(self, customer_id: uuid.UUID):
        return Customer.active().where(Customer.id == customer_id)

    def get(self, customer_id: uuid.UUID, *, include_deleted: bool = False) -> CustomerDTO | None:
        with store_errors("получение клиента"):
            query = Customer.select() if include_deleted else Customer.active()
            customer = query.where(Customer.id == customer_id).first()
        return CustomerDTO.from_model(customer) if customer else None

    def exists(self, customer_id: uuid.UUID) -> bool:
        with store_errors("проверка клиента"):
            return self._active_query(customer_id).exists()

    def create(self, payload: dict) -> CustomerDTO:
        with store_errors("создание клиента"):
            customer = Customer.create(**payload)
        return CustomerDTO.from_model(customer)

    def update(self, customer_id: uuid.UUID, payload: dict) -> CustomerDTO | None:
        with store_errors("обновление клиента"):
            customer = self._active_query(customer_id).first()
            if customer is None:
                return None
            for key, value in payload.items():
                setattr(customer, key, value)
            customer.touch()
            customer.save()
        return CustomerDTO.from_model(customer)

    def soft_delete(self, customer_id: uuid.UUID) -> bool:
        with store_errors("удаление клиента"):
            customer = self._active_query(customer_id).first()
            if customer is None:
                return False
            customer.soft_delete()
        return True

    def restore(self, customer_id: uuid.UUID) -> CustomerDTO | None:
        with store_errors("восстановление клиента"):
            customer = (
                Customer.select()
                .where((Customer.id == customer_id) & Customer.deleted_at.is_null(False))
                .first()
            )
            if customer is None:
                return None
            customer.restore()
        return CustomerDTO.from_model(customer)

    def search(
        self,
        *,
        customer_ids: Sequence[uuid.UUID] | None = None,
        search_text: str | None = None,
        customer_type: str | None = None,
        customer_class: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[CustomerDTO], int]:
        """Страница клиентов и общее количество по тому же предикату."""
        query = Customer.active()
        if customer_ids is not None:
            query = query.where(Customer.id.in_(list(customer_ids)))
        query = apply_text_search(query, CUSTOMER_TEXT_FIELDS, search_text)
        query = apply_exact_filters(
            query,
            [(Customer.customer_type, customer_type), (Customer.customer_class, customer_class)],
        )
        query = apply_order(query, CUSTOMER_SORT_FIELDS[sort_by], sort_order, Customer.id)
        with store_errors("поиск клиентов"):
            rows, total = paginate(query, page, limit)
        return [CustomerDTO.from_model(row) for row in rows], total

    def list_classes(self) -> list[str]:
        with store_errors("список классов"):
            rows = (
                Customer.active()
                .select(Customer.customer_class)
                .where(Customer.customer_class.is_null(False) & (Customer.customer_class != ""))
                .distinct()
                .tuples()
            )
            return sorted(value for (value,) in rows)

    def suggestions(self, text: str, limit: int) -> list[CustomerDTO]:
        query = (
            Customer.active()
            .where(icontains(Customer.name, text) | icontains(Customer.name_kana, text))
            .order_by(Customer.name)
            .limit(limit)
        )
        with store_errors("подсказки клиентов"):
            return [CustomerDTO.from_model(row) for row in query]

    def list_for_export(
        self,
        customer_ids: Sequence[uuid.UUID] | None = None,
        *,
        include_deleted: bool = False,
    ) -> list[CustomerDTO]:
        query = Customer.select() if include_deleted else Customer.active()
        if customer_ids is not None:
            query = query.where(Customer.id.in_(list(customer_ids)))
        query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
        with store_errors("выгрузка клиентов"):
            return [CustomerDTO.from_model(row) for row in query]


class TagRepository:
    """Теги и связи клиент–тег."""

    # ───── Теги ─────

    def list_all(self) -> list[TagDTO]:
        with store_errors("список тегов"):
            return [TagDTO.from_model(tag) for tag in Tag.select().order_by(Tag.name)]

    def get(self, tag_id: uuid.UUID) -> TagDTO | None:
        with store_errors("получение тега"):
            tag = Tag.get_or_none(Tag.id == tag_id)
        return TagDTO.from_model(tag) if tag else None

    def find_by_name(self, name: str, *, exclude_id: uuid.UUID | None = None) -> TagDTO | None:
        query = Tag.select().where(Tag.name == name)
        if exclude_id is not None:
            query = query.where(Tag.id != exclude_id)
        with store_errors("поиск тега по имени"):
            tag = query.first()
        return TagDTO.from_model(tag) if tag else None

    def find_by_names(self, names: Sequence[str]) -> list[TagDTO]:
        if not names:
            return []
        with store_errors("поиск тегов по именам"):
            return [TagDTO.from_model(t) for t in Tag.select().where(Tag.name.in_(list(names)))]

    def existing_ids(self, tag_ids: Sequence[uuid.UUID]) -> set[uuid.UUID]:
        if not tag_ids:
            return set()
        with store_errors("проверка тегов"):
            return {tag.id for tag in Tag.select(Tag.id).where(Tag.id.in_(list(tag_ids)))}

    def create(self, name: str) -> TagDTO:
        try:
            with db.atomic():
                tag = Tag.create(name=name)
        except IntegrityError as exc:
            raise ConflictError("このタグ名は既に存在します") from exc
        except PeeweeException as exc:
            logger.exception("❌ Ошибка хранилища при создании тега")
            raise StoreError(str(exc), context="создание тега") from exc
        return TagDTO.from_model(tag)

    def rename(self, tag_id: uuid.UUID, name: str) -> TagDTO | None:
        try:
            with db.atomic():
                updated = Tag.update(name=name).where(Tag.id == tag_id).execute()
        except IntegrityError as exc:
            raise ConflictError("このタグ名は既に存在します") from exc
        except PeeweeException as exc:
            logger.exception("❌ Ошибка хранилища при переименовании тега")
            raise StoreError(str(exc), context="переименование тега") from exc
        return self.get(tag_id) if updated else None

    def delete_with_links(self, tag_id: uuid.UUID) -> int:
        """Удаляет связи тега и сам тег; возвращает число отвязанных клиентов."""
        with store_errors("удаление тега"):
            with db.atomic():
                detached = CustomerTag.delete().where(CustomerTag.tag == tag_id).execute()
                Tag.delete().where(Tag.id == tag_id).execute()
        return detached

    def usage(self) -> list[TagUsageDTO]:
        """Теги с числом привязанных активных клиентов."""
        usage_count = fn.COUNT(Customer.id)
        query = (
            Tag.select(Tag, usage_count.alias("usage_count"))
            .join(CustomerTag, JOIN.LEFT_OUTER)
            .join(
                Customer,
                JOIN.LEFT_OUTER,
                on=(CustomerTag.customer == Customer.id) & Customer.deleted_at.is_null(True),
            )
            .group_by(Tag.id)
            .order_by(usage_count.desc(), Tag.name)
        )
        with store_errors("статистика тегов"):
            return [
                TagUsageDTO(
                    id=str(tag.id),
                    name=tag.name,
                    created_at=tag.created_at,
                    usage_count=tag.usage_count,
                )
                for tag in query
            ]

    # ───── Связи клиент–тег ─────

    def customer_ids_with_any(self, tag_ids: Sequence[uuid.UUID]) -> list[uuid.UUID]:
        """Клиенты, у которых есть хотя бы один из тегов."""
        if not tag_ids:
            return []
        query = (
            CustomerTag.select(CustomerTag.customer)
            .where(CustomerTag.tag.in_(list(tag_ids)))
            .distinct()
            .tuples()
        )
        with store_errors("разрешение фильтра тегов"):
            return [customer_id for (customer_id,) in query]

    def _links_query(self):
        return (
            CustomerTag.select(CustomerTag, Tag)
            .join(Tag)
            .order_by(CustomerTag.created_at, CustomerTag.id)
        )

    def tags_for_customer(self, customer_id: uuid.UUID) -> list[TagDTO]:
        query = self._links_query().where(CustomerTag.customer == customer_id)
        with store_errors("теги клиента"):
            return [TagDTO.from_model(link.tag) for link in query]

    def tags_for_customers(self, customer_ids: Sequence[uuid.UUID]) -> dict[str, list[TagDTO]]:
        result: dict[str, list[TagDTO]] = defaultdict(list)
        if not customer_ids:
            return result
        query = self._links_query().where(CustomerTag.customer.in_(list(customer_ids)))
        with store_errors("теги клиентов"):
            for link in query:
                result[str(link.customer_id)].append(TagDTO.from_model(link.tag))
        return result

    def attached_ids(self, customer_id: uuid.UUID) -> set[uuid.UUID]:
        query = CustomerTag.select(CustomerTag.tag).where(CustomerTag.customer == customer_id).tuples()
        with store_errors("связи клиента"):
            return {tag_id for (tag_id,) in query}

    def _insert_links(self, customer_id: uuid.UUID, tag_ids: Sequence[uuid.UUID]) -> None:
        now = utc_now()
        rows = [{"customer": customer_id, "tag": tag_id, "created_at": now} for tag_id in tag_ids]
        if rows:
            CustomerTag.insert_many(rows).execute()

    def replace_customer_tags(self, customer_id: uuid.UUID, tag_ids: Sequence[uuid.UUID]) -> None:
        with store_errors("замена тегов клиента"):
            with db.atomic():
                CustomerTag.delete().where(CustomerTag.customer == customer_id).execute()
                self._insert_links(customer_id, _unique(tag_ids))

    def add_customer_tags(self, customer_id: uuid.UUID, tag_ids: Sequence[uuid.UUID]) -> None:
        with store_errors("добавление тегов клиенту"):
            with db.atomic():
                self._insert_links(customer_id, _unique(tag_ids))

    def remove_customer_tag(self, customer_id: uuid.UUID, tag_id: uuid.UUID) -> int:
        with store_errors("удаление тега у клиента"):
            return (
                CustomerTag.delete()
                .where((CustomerTag.customer == customer_id) & (CustomerTag.tag == tag_id))
                .execute()
            )
