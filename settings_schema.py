from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator


class SettingsSchema(BaseModel):
    timezone: str = "UTC"
    weight_unit: str = "lbs"
    distance_unit: str = "mi"
    compound_rest_seconds: int = Field(90, gt=0)
    isolation_rest_seconds: int = Field(60, gt=0)
    consistency_weeks: int = Field(8, gt=0, le=52)
    recent_session_days: int = Field(7, gt=0)
    podium_size: int = Field(3, gt=0)
    auth_proxy_secret: str | bool | None = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value}")
        return value


DEFAULT_SETTINGS = SettingsSchema().model_dump(exclude={"auth_proxy_secret"})


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
