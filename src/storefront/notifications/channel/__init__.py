"""Channel adapter registry: pluggable notification dispatch channels.

Provides singleton access to channel adapters. Fake adapters are used by
default; tests and deployments install others with ``set_channel``.
"""

from storefront.notifications.channel.ports import EmailPort, SMSPort

EMAIL = "email"
SMS = "sms"

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the configured channel adapter (singleton per channel type)."""
    if channel_type not in _channel_instances:
        if channel_type == EMAIL:
            from storefront.notifications.channel.fake_email import FakeEmailAdapter

            _channel_instances[channel_type] = FakeEmailAdapter()
        elif channel_type == SMS:
            from storefront.notifications.channel.fake_sms import FakeSMSAdapter

            _channel_instances[channel_type] = FakeSMSAdapter()
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()


__all__ = ["EMAIL", "SMS", "EmailPort", "SMSPort", "get_channel", "reset_channels", "set_channel"]
