from datetime import date, datetime, timezone

FILENAME_STAMP_FORMAT = "%Y%m%d_%H%M%S"


def utc_now() -> datetime:
    """Текущее время UTC без tzinfo (так его хранит база)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def filename_stamp(moment: datetime | None = None) -> str:
    """Метка ``YYYYMMDD_HHMMSS`` для имён выгружаемых файлов."""
    return (moment or utc_now()).strftime(FILENAME_STAMP_FORMAT)


def format_iso(value: date | datetime | None) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def format_japanese(value: date | datetime | None) -> str:
    """Дата в виде ``YYYY/M/D`` без ведущих нулей."""
    if value is None:
        return ""
    return f"{value.year}/{value.month}/{value.day}"
