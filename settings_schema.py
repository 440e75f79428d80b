from typing import Literal

from pydantic import BaseModel, Field, ValidationError

class SettingsSchema(BaseModel):
    week_start: Literal["monday", "sunday"] = "monday"
    progress_points: int = Field(default=10, ge=1)
    pr_completed_sets_only: bool = True
    weight_unit: Literal["kg", "lb"] = "kg"
    language: str = "en"
    coach_api_key: str | bool | None = None

def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
