"""Stand-ins for the platform capabilities the agent talks to."""

import asyncio
import json

from conftest import SUBSCRIPTION_A
from pushalarm.agent.relay import NotificationPermission


class RecordingNotifier:
    def __init__(self, delay: float = 0.0, fail_for=()):
        self.shown = []
        self.delay = delay
        self.fail_for = set(fail_for)

    async def show_notification(self, title, body):
        if self.delay:
            await asyncio.sleep(self.delay)
        if title in self.fail_for:
            raise RuntimeError("notification service unavailable")
        self.shown.append((title, body))


class FakePermissions:
    def __init__(self, state, answer=NotificationPermission.GRANTED):
        self.state = state
        self.answer = answer
        self.requested = 0
        self.listeners = []

    async def query(self):
        return self.state

    async def request(self):
        self.requested += 1
        self.state = self.answer
        return self.answer

    def on_change(self, callback):
        self.listeners.append(callback)

    def change(self, state):
        """The user flips the setting outside the app."""
        self.state = state
        for callback in self.listeners:
            callback(state)


class FakePushManager:
    def __init__(self, existing=None):
        self.existing = existing
        self.subscribe_calls = []

    async def get_subscription(self):
        return self.existing

    async def subscribe(self, user_visible_only, application_server_key):
        self.subscribe_calls.append((user_visible_only, application_server_key))
        self.existing = json.loads(SUBSCRIPTION_A)
        return self.existing
