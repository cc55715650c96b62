# qc_api/schemas.py
from __future__ import annotations
from typing import Optional, Literal
from pydantic import BaseModel, Field, ConfigDict

# Record store selection (QC_BACKEND)
Backend = Literal["sql", "supabase"]


class QualityRecord(BaseModel):
    """
    One row of the quality table, passed through as stored.
    Only the filtered columns are declared; every other column is kept (extra="allow").
    Timestamps are returned as local 'YYYY-MM-DD HH:MM:SS' (no offset).
    """
    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "LotID": "L24-0915-A",
                "ArticleNumber": "AB 1200-7",
                "ShiftStartTime": "2025-09-15 06:00:00",
                "Inspector": "QC-02",
                "DefectCount": 3,
            }
        },
    )

    LotID: Optional[str] = None
    ArticleNumber: Optional[str] = None
    ShiftStartTime: Optional[str] = Field(default=None, description="Local time 'YYYY-MM-DD HH:MM:SS'.")


class ErrorBody(BaseModel):
    error: str
    details: Optional[str] = Field(default=None, description="Upstream detail, truncated.")


class RestartResult(BaseModel):
    message: str


class Health(BaseModel):
    status: str
    time: str
    backend: Backend
