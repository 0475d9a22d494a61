"""Ответы с CSV-файлом для скачивания."""

from urllib.parse import quote

from fastapi.responses import Response

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content.encode("utf-8"),
        media_type=CSV_MEDIA_TYPE,
        headers={
            "Content-Disposition": f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename)}",
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        },
    )
