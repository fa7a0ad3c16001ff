"""Utilities for transforming DataForSEO Maps items into result records."""

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from rankgrid.models import ResultRecord

logger = logging.getLogger(__name__)

_ADDRESS_INFO_KEYS = ("address", "street_address", "city", "region", "zip", "country_code")


def format_address(item: Dict[str, Any]) -> Optional[str]:
    address = item.get("address")
    if isinstance(address, str) and address.strip():
        return address.strip()

    info = item.get("address_info")
    if isinstance(info, dict):
        parts = [str(info[key]).strip() for key in _ADDRESS_INFO_KEYS if info.get(key)]
        if parts:
            return ", ".join(parts)

    snippet = item.get("snippet")
    if isinstance(snippet, str) and snippet.strip():
        return snippet.strip()
    return None


def display_host(value: Optional[str]) -> Optional[str]:
    """Short hostname for display, e.g. ``https://www.acme.com/x`` -> ``acme.com``."""
    if not value:
        return None
    text = str(value).strip()
    try:
        host = urlsplit(text if text.startswith("http") else f"https://{text}").hostname
    except ValueError:
        host = None
    if not host:
        return text.replace("https://", "").replace("http://", "").rstrip("/") or None
    return host[4:] if host.startswith("www.") else host


def _rating_value(raw: Any) -> Optional[float]:
    if isinstance(raw, dict):
        raw = raw.get("value")
    return _safe_float(raw)


def _rating_count(item: Dict[str, Any]) -> Optional[int]:
    rating = item.get("rating")
    if isinstance(rating, dict) and rating.get("votes_count") is not None:
        return _safe_int(rating.get("votes_count"))
    return _safe_int(item.get("user_ratings_total") or item.get("rating_count") or item.get("reviews_count"))


def to_result_record(item: Dict[str, Any]) -> ResultRecord:
    return ResultRecord(
        rank_group=_safe_int(item.get("rank_group")),
        rank_absolute=_safe_int(item.get("rank_absolute")),
        title=_strip_or_none(item.get("title") or item.get("name")),
        place_id=_strip_or_none(item.get("place_id")),
        cid=_strip_or_none(item.get("cid")),
        phone=_strip_or_none(item.get("phone")),
        website=_strip_or_none(item.get("url") or item.get("website") or item.get("domain")),
        address=format_address(item),
        rating=_rating_value(item.get("rating")),
        rating_count=_rating_count(item),
        raw=item,
    )


def to_result_records(items: Optional[Iterable[Any]]) -> List[ResultRecord]:
    records: List[ResultRecord] = []
    for item in items or []:
        if not isinstance(item, dict):
            logger.debug("Skipping non-dict item: %r", item)
            continue
        records.append(to_result_record(item))
    return records


def to_detail_row(record: ResultRecord, is_target: bool = False) -> Dict[str, Any]:
    """Compact competitor row for the per-cell detail view."""
    return {
        "rank": record.rank_group if record.rank_group is not None else record.rank_absolute,
        "name": record.title,
        "address": record.address,
        "rating": record.rating,
        "rating_count": record.rating_count,
        "website": display_host(record.website),
        "phone": record.phone,
        "place_id": record.place_id,
        "cid": record.cid,
        "is_target": is_target,
    }


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
