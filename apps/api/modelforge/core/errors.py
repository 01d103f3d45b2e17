from __future__ import annotations


class StoreError(Exception):
    """Persistence adapter failure (I/O, decode, constraint)."""


class NotFoundError(StoreError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id
