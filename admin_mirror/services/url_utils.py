from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

TABLE_QUERY_PARAM = 'table'


def parse_table_from_url(url: str | None) -> str | None:
    """Table number carried in a QR code URL's ``table`` query parameter.

    Anything that is not an absolute URL, or has no non-empty ``table`` value,
    yields ``None``.
    """
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    values = parse_qs(parts.query, keep_blank_values=True).get(TABLE_QUERY_PARAM)
    if not values or not values[0]:
        return None
    return values[0]
