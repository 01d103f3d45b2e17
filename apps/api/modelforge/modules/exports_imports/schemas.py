from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional


RowStatus = Literal["NEW", "DUPLICATE", "ERROR"]
PlanStatus = Literal["pending", "committing", "committed", "cancelled"]


# ---------- Imports ----------

class ImportRowOut(BaseModel):
    row_index: int
    # header line + 1-based numbering
    row_number: int
    row: Dict[str, str] = Field(default_factory=dict)
    status: RowStatus
    error_message: Optional[str] = None
    selected: bool = False
    data: Optional[Dict[str, Any]] = None


class NewArmyOut(BaseModel):
    name: str
    game_system_name: str


class ImportSummaryOut(BaseModel):
    imported: int = 0
    skipped_duplicates: int = 0
    errors: int = 0
    error_rows: List[ImportRowOut] = Field(default_factory=list)


class ImportPlanOut(BaseModel):
    plan_id: str
    status: PlanStatus
    created_at: str
    needs_review: bool
    game_systems_to_create: List[str] = Field(default_factory=list)
    armies_to_create: List[NewArmyOut] = Field(default_factory=list)
    rows: List[ImportRowOut] = Field(default_factory=list)
    summary: Optional[ImportSummaryOut] = None


class RowSelectIn(BaseModel):
    selected: bool


class DuplicatesSelectIn(BaseModel):
    selected: bool
