from typing import Optional
from pydantic import BaseModel, Field

class ContextResponse(BaseModel):
    school_id: Optional[int] = None
    season_id: Optional[int] = None

class SchoolContextUpdate(BaseModel):
    school_id: int = Field(..., gt=0)

class SeasonContextUpdate(BaseModel):
    season_id: int = Field(..., gt=0)
