from __future__ import annotations

import logging

import httpx

from .recommendations.config import DEFAULT_ENGINE_CONFIG

logger = logging.getLogger(__name__)

_MAX_CONTENT = 1900


def send_alert(
    message: str,
    context: str = "recommender",
    url: str | None = None,
    timeout: float = 5.0,
    _client: httpx.Client | None = None,
) -> bool:
    """POST an operator alert to the configured webhook.

    Returns True when the webhook accepted it. Delivery problems are logged
    and never raised; without a URL the alert only goes to the log.
    """
    url = url if url is not None else DEFAULT_ENGINE_CONFIG.alert_webhook_url
    content = f"[{context}] {message}"[:_MAX_CONTENT]
    if not url:
        logger.error("ALERT %s", content)
        return False

    managed = _client is None
    client = _client if _client is not None else httpx.Client(timeout=timeout)
    try:
        r = client.post(url, json={"content": content})
        r.raise_for_status()
        return True
    except httpx.HTTPError as exc:
        logger.warning("Alert webhook failed (%s): %s", context, exc)
        return False
    finally:
        if managed:
            client.close()
