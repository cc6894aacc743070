from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime, time
from typing import Optional

class SeasonBase(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    start_date: date
    end_date: date
    hour_start: Optional[time] = None
    hour_end: Optional[time] = None
    vacation_days: Optional[str] = None

class SeasonCreate(SeasonBase):
    school_id: int
    is_active: bool = False
    created_by: Optional[int] = None

class SeasonUpdate(BaseModel):
    """Partial update; only fields explicitly sent are merged."""
    name: Optional[str] = Field(default=None, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    hour_start: Optional[time] = None
    hour_end: Optional[time] = None
    vacation_days: Optional[str] = None
    school_id: Optional[int] = None
    is_active: Optional[bool] = None

class SeasonClone(BaseModel):
    start_date: date
    end_date: date
    name: Optional[str] = None

class SeasonResponse(SeasonBase):
    id: int
    school_id: int
    is_active: bool
    is_closed: bool
    is_historical: bool = False
    closed_at: Optional[datetime] = None
    closed_by: Optional[int] = None
    created_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

class SeasonStatistics(BaseModel):
    school_id: int
    total_seasons: int
    active_seasons: int
    closed_seasons: int
    historical_seasons: int
    current_seasons: int
