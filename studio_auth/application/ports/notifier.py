from typing import Optional, Protocol


class Notifier(Protocol):
    async def send(self, email: str, code: str, username: Optional[str] = None) -> None:
        """Deliver the code out-of-band; raise NotificationError on failure."""
        ...
