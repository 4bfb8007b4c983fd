import json
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from pushalarm.deps import Settings, get_settings
from pushalarm.push.registry import SubscriptionRegistry, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push"])

limiter = Limiter(key_func=get_remote_address)


def _register_rate_limit() -> str:
    return get_settings().REGISTER_RATE_LIMIT


def normalize_descriptor(body: str) -> str:
    """
    Strona wysyła {"subscription": {...}}, service worker sam deskryptor.
    Opakowaną wersję rozpakowujemy; wszystko inne zapisujemy bez zmian.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict) and "subscription" in data:
        return json.dumps(data["subscription"], separators=(",", ":"))
    return body


@router.get(
    "/vapidPublicKey",
    response_class=PlainTextResponse,
    summary="Public VAPID key the browser subscribes with",
)
async def vapid_public_key(settings: Settings = Depends(get_settings)):
    return settings.VAPID_PUBLIC_KEY


@router.post("/register", status_code=201, summary="Register a push subscription")
@limiter.limit(_register_rate_limit)
async def register(
    request: Request,
    registry: SubscriptionRegistry = Depends(get_registry),
):
    # Deskryptor jest nieprzezroczysty; błędne body też kończy się 201.
    # Body spoza UTF-8 nie jest poprawnym JSON-em (RFC 8259), zapisujemy je z U+FFFD;
    # surrogateescape odpada, bo sterowniki bazy nie zapiszą samotnych surogatów.
    raw = await request.body()
    descriptor = normalize_descriptor(raw.decode("utf-8", errors="replace"))
    await registry.register(descriptor)
    return Response(status_code=201)
