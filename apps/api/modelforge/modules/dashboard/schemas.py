from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from modelforge.modules.collection.schemas import PaintingSessionOut, PaintOut


class StatusCountOut(BaseModel):
    status: str
    count: int
    percentage: float


class SystemProgressOut(BaseModel):
    game_system_id: str
    name: str
    total_models: int
    ready_models: int
    percentage: float


class ArmyProgressOut(BaseModel):
    army_id: str
    name: str
    game_system_name: str
    total_models: int
    ready_models: int
    percentage: float


class DashboardOut(BaseModel):
    game_system_id: Optional[str] = None
    army_id: Optional[str] = None
    total_models: int = 0
    status_breakdown: List[StatusCountOut] = Field(default_factory=list)
    game_system_progress: List[SystemProgressOut] = Field(default_factory=list)
    army_progress: List[ArmyProgressOut] = Field(default_factory=list)
    min_stock_threshold: int
    low_stock_paints: List[PaintOut] = Field(default_factory=list)


class LowStockOut(BaseModel):
    min_stock_threshold: int
    items: List[PaintOut] = Field(default_factory=list)


class CalendarOut(BaseModel):
    month: Optional[str] = None
    # YYYY-MM-DD -> sessions starting that day, earliest first
    days: Dict[str, List[PaintingSessionOut]] = Field(default_factory=dict)
