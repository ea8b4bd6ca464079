import json
import logging
from typing import Any, Dict, List, Optional

from scriptgen.errors import InputMissingError
from scriptgen.models import CapturedExchange, HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


def _headers(items: List[Dict[str, Any]]) -> Dict[str, str]:
    return {h.get("name", ""): h.get("value", "") for h in items or [] if h.get("name")}


def _entry_to_exchange(index: int, entry: Dict[str, Any]) -> CapturedExchange:
    req = entry.get("request") or {}
    post_data = req.get("postData") or {}
    request = HttpRequest(
        method=(req.get("method") or "GET").upper(),
        url=req.get("url", ""),
        headers=_headers(req.get("headers")),
        body=post_data.get("text"),
    )
    res = entry.get("response")
    response: Optional[HttpResponse] = None
    if isinstance(res, dict):
        response = HttpResponse(
            status=int(res.get("status") or 0),
            headers=_headers(res.get("headers")),
            body=(res.get("content") or {}).get("text"),
        )
    return CapturedExchange(index=index, comment=entry.get("comment") or "", request=request, response=response)


def exchanges_from_har(har_data: Dict[str, Any]) -> List[CapturedExchange]:
    """Turn parsed HAR 1.2 data into captured exchanges; the entry comment is the tag."""
    log_data = har_data.get("log", {}) if isinstance(har_data, dict) else {}
    entries = log_data.get("entries", []) if isinstance(log_data, dict) else []
    return [_entry_to_exchange(i, entry) for i, entry in enumerate(e for e in entries if isinstance(e, dict))]


def load_har(har_file: str) -> List[CapturedExchange]:
    with open(har_file, "r", encoding="utf-8", errors="replace") as f:
        try:
            har_data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Could not parse HAR file {har_file}: {e}")
            raise InputMissingError(f"Capture file '{har_file}' is not valid HAR: {e}") from e
    exchanges = exchanges_from_har(har_data)
    logger.info(f"Loaded {len(exchanges)} exchanges from {har_file}")
    return exchanges
