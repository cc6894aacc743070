from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

class SnapshotCreate(BaseModel):
    snapshot_type: str = Field(..., min_length=1, max_length=50)
    snapshot_data: Dict[str, Any]
    description: Optional[str] = None
    is_immutable: bool = True

class SnapshotResponse(BaseModel):
    id: int
    season_id: int
    snapshot_type: str
    snapshot_data: Dict[str, Any]
    snapshot_date: datetime
    is_immutable: bool
    created_by: Optional[int] = None
    description: Optional[str] = None
    checksum: str

    model_config = ConfigDict(from_attributes=True)

class SnapshotVerification(BaseModel):
    snapshot_id: int
    checksum: str
    valid: bool
