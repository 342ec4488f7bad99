"""
Notification decoder port: turns the raw asynchronous payload into items.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.transactions import NotificationItem


@runtime_checkable
class NotificationDecoder(Protocol):

    def decode(self, notification: str) -> list[NotificationItem]: ...
