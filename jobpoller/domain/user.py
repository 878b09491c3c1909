from dataclasses import dataclass
from typing import Optional


@dataclass
class User:
    id: str
    messaging_handle: Optional[str] = None  # recipient address at the delivery provider
    display_name: Optional[str] = None

    def can_receive_push(self) -> bool:
        return bool(self.messaging_handle)
