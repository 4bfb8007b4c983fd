import asyncio
import json
import logging
from typing import Optional

import requests
from pydantic import ValidationError
from pywebpush import WebPushException, webpush

from pushalarm.deps import Settings
from pushalarm.push.models import PushSubscriptionInfo

logger = logging.getLogger(__name__)

# Push service answers meaning "this endpoint will never work again"
GONE_STATUS_CODES = (404, 410)


class PushDeliveryError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SubscriptionGone(PushDeliveryError):
    """The push service reports the endpoint as expired or unsubscribed."""


class InvalidSubscription(PushDeliveryError):
    """The stored descriptor is not a usable push subscription."""


def parse_subscription(subscription_json: str) -> PushSubscriptionInfo:
    try:
        return PushSubscriptionInfo.model_validate(json.loads(subscription_json))
    except (ValueError, ValidationError) as e:
        raise InvalidSubscription(f"Unusable subscription descriptor: {e}") from e


async def send_web_push(subscription_json: str, payload: str, settings: Settings) -> None:
    """
    Szyfruje i wysyła payload przez pywebpush (VAPID).
    pywebpush jest synchroniczny (requests), więc wołamy go w wątku,
    żeby nie blokować pętli zdarzeń.
    """
    info = parse_subscription(subscription_json)

    def _send():
        return webpush(
            subscription_info=info.to_webpush(),
            data=payload,
            vapid_private_key=settings.VAPID_PRIVATE_KEY,
            vapid_claims={"sub": settings.VAPID_SUBJECT},
            ttl=settings.PUSH_TTL_SECONDS,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )

    try:
        await asyncio.to_thread(_send)
    except WebPushException as e:
        status_code = e.response.status_code if e.response is not None else None
        if status_code in GONE_STATUS_CODES:
            raise SubscriptionGone(f"Endpoint gone ({status_code})", status_code) from e
        raise PushDeliveryError(f"Web push error {status_code}: {e.message[:400]}", status_code) from e
    except requests.RequestException as e:
        # Odmowa połączenia, DNS, timeout: endpoint może jeszcze wrócić
        raise PushDeliveryError(f"Web push transport error: {e}") from e
