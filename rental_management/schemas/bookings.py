from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class BookingCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    materielId: str
    startDate: str
    endDate: str
    userId: Optional[str] = None

    @field_validator("materielId")
    @classmethod
    def _require_materiel_id(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("materielId is required")
        return value


class ExtensionCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    newEndDate: str
