from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, NewType, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

GameSystemId = NewType("GameSystemId", str)
ArmyId = NewType("ArmyId", str)
ModelId = NewType("ModelId", str)
PaintId = NewType("PaintId", str)
PaintingSessionId = NewType("PaintingSessionId", str)

# ordered painting progression
ModelStatus = Literal["Purchased", "Printed", "Assembled", "Primed", "Painted", "Based", "Ready to Game"]
MODEL_STATUSES: Tuple[str, ...] = ("Purchased", "Printed", "Assembled", "Primed", "Painted", "Based", "Ready to Game")

PaintType = Literal["Base", "Layer", "Shade", "Contrast", "Technical", "Dry", "Air"]
PAINT_TYPES: Tuple[str, ...] = ("Base", "Layer", "Shade", "Contrast", "Technical", "Dry", "Air")

NotificationType = Literal["success", "error"]


def to_datetime(v: str) -> datetime:
    dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
    # naive timestamps are taken as UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _parse_iso(v: str) -> str:
    try:
        to_datetime(v)
    except ValueError as e:
        raise ValueError(f"not an ISO-8601 timestamp: {v!r}") from e
    return v


def patch_changes(patch: BaseModel) -> Dict[str, Any]:
    # unset and None fields are left untouched
    return {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}


# ---------- Game systems ----------

class ColorScheme(BaseModel):
    primary: str
    secondary: str
    background: str


DEFAULT_COLOR_SCHEME = ColorScheme(primary="#4f46e5", secondary="#10b981", background="#1f2937")


class GameSystemCreateIn(BaseModel):
    name: str = Field(min_length=1)
    color_scheme: Optional[ColorScheme] = None


class GameSystemPatchIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    color_scheme: Optional[ColorScheme] = None


class GameSystemOut(BaseModel):
    id: str
    name: str
    color_scheme: Optional[ColorScheme] = None


# ---------- Armies ----------

class ArmyCreateIn(BaseModel):
    name: str = Field(min_length=1)
    game_system_id: str = Field(min_length=1)


class ArmyPatchIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    game_system_id: Optional[str] = Field(default=None, min_length=1)


class ArmyOut(BaseModel):
    id: str
    name: str
    game_system_id: str


# ---------- Models ----------

class PaintRecipeItem(BaseModel):
    paint_id: str
    usage: str = ""


class ModelCreateIn(BaseModel):
    name: str = Field(min_length=1)
    game_system_id: str = Field(min_length=1)
    army_ids: List[str] = Field(default_factory=list)
    description: str = ""
    quantity: int = Field(default=1, ge=1)
    status: ModelStatus = "Purchased"
    image_url: Optional[str] = None
    painting_notes: Optional[str] = None
    paint_recipe: List[PaintRecipeItem] = Field(default_factory=list)


class ModelPatchIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    game_system_id: Optional[str] = Field(default=None, min_length=1)
    army_ids: Optional[List[str]] = None
    description: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=1)
    status: Optional[ModelStatus] = None
    image_url: Optional[str] = None
    painting_notes: Optional[str] = None
    paint_recipe: Optional[List[PaintRecipeItem]] = None


class ModelOut(ModelCreateIn):
    id: str
    created_at: str
    last_updated: str


class ModelsBulkCreateIn(BaseModel):
    items: List[ModelCreateIn] = Field(min_length=1)


class ModelsBulkUpdateIn(BaseModel):
    ids: List[str] = Field(min_length=1)
    patch: ModelPatchIn


class IdsIn(BaseModel):
    ids: List[str] = Field(min_length=1)


# ---------- Paints ----------

class PaintCreateIn(BaseModel):
    name: str = Field(min_length=1)
    manufacturer: str = Field(min_length=1)
    paint_type: PaintType = "Base"
    color_scheme: str = ""
    rgb_code: Optional[str] = None
    stock: int = Field(default=1, ge=0)


class PaintPatchIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    manufacturer: Optional[str] = Field(default=None, min_length=1)
    paint_type: Optional[PaintType] = None
    color_scheme: Optional[str] = None
    rgb_code: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0)


class PaintOut(PaintCreateIn):
    id: str


class PaintsBulkCreateIn(BaseModel):
    items: List[PaintCreateIn] = Field(min_length=1)


# ---------- Painting sessions ----------

class PaintingSessionCreateIn(BaseModel):
    title: str = Field(min_length=1)
    start: str
    end: str
    notes: Optional[str] = None
    model_ids: List[str] = Field(default_factory=list)
    game_system_id: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def _iso(cls, v: str) -> str:
        return _parse_iso(v)

    @model_validator(mode="after")
    def _end_after_start(self) -> "PaintingSessionCreateIn":
        if to_datetime(self.end) < to_datetime(self.start):
            raise ValueError("end must not be before start")
        return self


class PaintingSessionPatchIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    start: Optional[str] = None
    end: Optional[str] = None
    notes: Optional[str] = None
    model_ids: Optional[List[str]] = None
    game_system_id: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def _iso(cls, v: Optional[str]) -> Optional[str]:
        return _parse_iso(v) if v is not None else v


class PaintingSessionOut(BaseModel):
    id: str
    title: str
    start: str
    end: str
    notes: Optional[str] = None
    model_ids: List[str] = Field(default_factory=list)
    game_system_id: Optional[str] = None


# ---------- Notifications ----------

class NotificationOut(BaseModel):
    id: int
    message: str
    type: NotificationType
    created_at: str
