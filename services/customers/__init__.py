"""Сервисы клиентов: CRUD, поиск, импорт из CSV.

Подмодули импортируйте напрямую, пакет ничего не переэкспортирует.
"""
