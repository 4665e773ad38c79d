"""Configuration for the HTTP notifier."""

from dataclasses import dataclass, field


@dataclass
class HTTPNotifierConfig:
    """Configuration for HTTPNotifier.

    Attributes:
        base_url: Base URL of the notification webhook (e.g., "http://push.local")
        path: Path that receives POSTed notifications
        timeout_s: Request timeout in seconds
        headers: Default headers to include in all requests
        preview_length: Maximum characters of the message body sent
    """

    base_url: str
    path: str = "/notifications"
    timeout_s: float = 10.0
    headers: dict[str, str] = field(default_factory=dict)
    preview_length: int = 100
