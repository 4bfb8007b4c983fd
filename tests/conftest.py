"""Shared fixtures: test environment, a throwaway database, the HTTP app."""

import base64
import os
import tempfile
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

# Environment must be in place before pushalarm.db / main are imported.
_TMP = Path(tempfile.mkdtemp(prefix="pushalarm-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'default.db'}"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def make_vapid_pair() -> tuple[str, str]:
    """Return (public, private) in the format generate_keys.py prints."""
    key = ec.generate_private_key(ec.SECP256R1())
    public = key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    private = key.private_numbers().private_value.to_bytes(32, "big")
    return _b64(public), _b64(private)


VAPID_PUBLIC_KEY, VAPID_PRIVATE_KEY = make_vapid_pair()
os.environ["VAPID_SUBJECT"] = "mailto:alarms@example.com"
os.environ["VAPID_PUBLIC_KEY"] = VAPID_PUBLIC_KEY
os.environ["VAPID_PRIVATE_KEY"] = VAPID_PRIVATE_KEY

import httpx  # noqa: E402
from databases import Database  # noqa: E402

from pushalarm.db import create_tables  # noqa: E402
from pushalarm.push.registry import SubscriptionRegistry, get_registry  # noqa: E402


SUBSCRIPTION_A = (
    '{"endpoint":"https://push.example.com/send/aaa","expirationTime":null,'
    '"keys":{"p256dh":"BPa","auth":"aa"}}'
)
SUBSCRIPTION_B = (
    '{"endpoint":"https://push.example.com/send/bbb","expirationTime":null,'
    '"keys":{"p256dh":"BPb","auth":"bb"}}'
)


@pytest.fixture
async def db(tmp_path):
    url = f"sqlite:///{tmp_path / 'pushalarm.db'}"
    create_tables(url)
    database = Database(url)
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture
def registry(db):
    return SubscriptionRegistry(db)


@pytest.fixture
async def client(registry):
    import main

    main.app.dependency_overrides[get_registry] = lambda: registry
    transport = httpx.ASGITransport(app=main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    main.app.dependency_overrides.clear()
