"""Utility helpers for building filtered Peewee queries."""

from __future__ import annotations

from math import ceil
from typing import Any, Container, Iterable, Sequence

from peewee import OP, SQL, Expression, Field, ModelSelect, Node, NodeList, Value

from services.validators import tokenize_search_query

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def icontains(field: Field, value: str) -> Expression:
    """Регистронезависимое вхождение подстроки, ``%`` и ``_`` экранированы."""
    pattern = f"%{escape_like(value)}%"
    return Expression(field, OP.ILIKE, NodeList((Value(pattern), SQL("ESCAPE '\\'"))))


def build_or_condition(fields: Sequence[Field], value: str) -> Node | None:
    """OR-условие: ``value`` встречается хотя бы в одном из полей."""
    condition: Node | None = None
    for field in fields:
        expr = icontains(field, value)
        condition = expr if condition is None else (condition | expr)
    return condition


def apply_text_search(
    query: ModelSelect, fields: Sequence[Field], search_text: str | None
) -> ModelSelect:
    """Каждое слово запроса обязано найтись хотя бы в одном поле.

    Между словами действует AND, между полями одного слова OR.
    """
    for token in tokenize_search_query(search_text):
        condition = build_or_condition(fields, token)
        if condition is not None:
            query = query.where(condition)
    return query


def apply_exact_filters(
    query: ModelSelect, items: Iterable[tuple[Field, Any]]
) -> ModelSelect:
    for field, value in items:
        if value is None or value == "":
            continue
        query = query.where(field == value)
    return query


def parse_positive_int(value: Any, default: int) -> int:
    """Целое ≥1 из параметра запроса; мусор заменяется значением по умолчанию."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def normalize_pagination(page: Any, limit: Any) -> tuple[int, int]:
    page_num = parse_positive_int(page, DEFAULT_PAGE)
    limit_num = min(parse_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT)
    return page_num, limit_num


def normalize_order(
    sort_by: str | None,
    sort_order: str | None,
    allowed: Container[str],
    default: str,
) -> tuple[str, str]:
    """Ключ сортировки из белого списка и направление; иначе значения по умолчанию."""
    key = (sort_by or "").strip()
    if key not in allowed:
        key = default
    direction = (sort_order or "").strip().lower()
    if direction not in {"asc", "desc"}:
        direction = "desc"
    return key, direction


def apply_order(
    query: ModelSelect, field: Field, direction: str, tiebreaker: Field
) -> ModelSelect:
    if direction == "desc":
        return query.order_by(field.desc(), tiebreaker.desc())
    return query.order_by(field.asc(), tiebreaker.asc())


def total_pages(total: int, limit: int) -> int:
    return ceil(total / limit) if limit else 0


def paginate(query: ModelSelect, page: int, limit: int) -> tuple[list, int]:
    """Строки страницы и общее число строк по тому же предикату."""
    total = query.order_by().count()
    rows = list(query.offset((page - 1) * limit).limit(limit))
    return rows, total
