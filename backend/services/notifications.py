import logging
from datetime import datetime, timezone

import requests

from core import config

logger = logging.getLogger(__name__)


# --- Core function ---
def notify(event: str, payload: dict) -> bool:
    """
    Tell the notification service something happened. Runs as a background
    task after the response is sent; a failed delivery is logged and dropped.
    """
    if not config.NOTIFICATION_URL:
        logger.debug("Notification skipped (no NOTIFICATION_URL): %s", event)
        return False

    body = {
        "event": event,
        "payload": {key: str(value) if value is not None else None for key, value in payload.items()},
        "sent_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        resp = requests.post(config.NOTIFICATION_URL, json=body, timeout=config.NOTIFICATION_TIMEOUT)
        resp.raise_for_status()
        logger.info("Notification %s delivered: %s", event, resp.status_code)
        return True
    except requests.RequestException as e:
        logger.warning("Notification %s failed: %s", event, e)
        return False
