from __future__ import annotations
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Credentials:
    """
    Mailbox credentials for a single request.
    Never persisted; the secret is kept out of repr so it cannot leak into logs.
    """
    address: str
    secret: str = field(repr=False)
