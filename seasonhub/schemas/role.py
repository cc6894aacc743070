from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class SeasonRoleAssign(BaseModel):
    user_id: int
    role: str = Field(..., min_length=1, max_length=50)

class SeasonRoleResponse(BaseModel):
    user_id: int
    season_id: int
    role: str
    permissions: List[str] = []

class UserSeasonEntry(BaseModel):
    season_id: int
    season_name: Optional[str] = None
    school_id: Optional[int] = None
    role: str

class UserSeasonRoleCreate(BaseModel):
    user_id: int
    season_id: int
    role: str

class UserSeasonRoleUpdate(BaseModel):
    role: str

class UserSeasonRoleRead(BaseModel):
    id: int
    user_id: int
    season_id: int
    role: str

    model_config = ConfigDict(from_attributes=True)
