from __future__ import annotations

from pydantic import BaseModel, Field


class SettingsOut(BaseModel):
    min_stock_threshold: int


class SettingsPutIn(BaseModel):
    min_stock_threshold: int = Field(ge=0)


class ClearAllIn(BaseModel):
    confirm: bool = False
