from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ActorContext:
    """
    Who is performing a ledger operation.

    Passed explicitly into every service call; written to `created_by`
    columns and to posting failure records.
    """
    actor_id: Optional[str] = None
    source: str = "api"

    @classmethod
    def system(cls) -> "ActorContext":
        return cls(actor_id="system", source="system")
