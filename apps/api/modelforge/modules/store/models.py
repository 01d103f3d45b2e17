from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


class GameSystemRow(SQLModel, table=True):
    __tablename__ = "game_systems"

    id: str = Field(primary_key=True)
    name: str
    color_scheme_json: Optional[str] = Field(default=None)


class ArmyRow(SQLModel, table=True):
    __tablename__ = "armies"

    id: str = Field(primary_key=True)
    name: str
    # not enforced after creation; cascades are applied by the store
    game_system_id: str = Field(index=True)


class ModelRow(SQLModel, table=True):
    __tablename__ = "models"

    id: str = Field(primary_key=True)
    name: str
    game_system_id: str = Field(index=True)
    army_ids_json: str = Field(default="[]")
    description: str = Field(default="")
    quantity: int = Field(default=1)
    status: str  # Purchased|Printed|Assembled|Primed|Painted|Based|Ready to Game
    image_url: Optional[str] = Field(default=None)
    painting_notes: Optional[str] = Field(default=None)
    paint_recipe_json: str = Field(default="[]")

    created_at: str
    last_updated: str


class PaintRow(SQLModel, table=True):
    __tablename__ = "paints"

    id: str = Field(primary_key=True)
    name: str
    manufacturer: str
    paint_type: str  # Base|Layer|Shade|Contrast|Technical|Dry|Air
    color_scheme: str = Field(default="")
    rgb_code: Optional[str] = Field(default=None)
    stock: int = Field(default=0)


class PaintingSessionRow(SQLModel, table=True):
    __tablename__ = "painting_sessions"

    id: str = Field(primary_key=True)
    title: str
    start: str
    end: str
    notes: Optional[str] = Field(default=None)
    model_ids_json: str = Field(default="[]")
    game_system_id: Optional[str] = Field(default=None)


class SettingRow(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value_json: str
