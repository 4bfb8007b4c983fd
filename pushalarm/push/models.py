from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

# The only push payload the agent acts on: "re-check your alarms now"
HEARTBEAT_PAYLOAD = "heartbeat"


class PushSubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscriptionInfo(BaseModel):
    """Push endpoint descriptor as serialized by PushSubscription.toJSON()."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    endpoint: str
    keys: PushSubscriptionKeys
    expiration_time: Optional[float] = Field(default=None, alias="expirationTime")

    def to_webpush(self) -> dict:
        # pywebpush expects exactly {"endpoint": ..., "keys": {...}}
        return {"endpoint": self.endpoint, "keys": self.keys.model_dump()}
