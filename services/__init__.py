"""Пакет прикладных сервисов.

Массовых импортов подмодулей на уровне пакета нет; импортируйте нужное
напрямую, например:
    from services.container import get_customer_search_service
    from services.invoices.calculation import calculate_totals
"""

__all__: list[str] = []
