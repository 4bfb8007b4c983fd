# pushalarm/utils.py

import base64
import logging


def url_base64_to_bytes(value: str) -> bytes:
    """
    Dekoduje base64url bez paddingu (format kluczy VAPID) do bajtów.
    """
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def bytes_to_url_base64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Podpina jeden StreamHandler pod logger "pushalarm" (idempotentnie).
    """
    logger = logging.getLogger("pushalarm")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
