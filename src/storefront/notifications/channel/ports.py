"""Outbound notification ports.

Adapters report delivery as a dict with ``message_id`` and ``status``
("sent" or "failed"), plus ``error`` on failure. They never raise for a
rejected message; dispatch logs the failure and carries on.
"""

from abc import ABC, abstractmethod


class EmailPort(ABC):
    """Delivers customer and operations email."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> dict: ...


class SMSPort(ABC):
    """Delivers short text updates to a customer phone number."""

    @abstractmethod
    def send(self, to: str, body: str) -> dict: ...
