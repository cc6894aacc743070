from typing import List, Optional
from pydantic import BaseModel, EmailStr
from seasonhub.schemas.user import UserSummary

class Token(BaseModel):
    access_token: str
    token_type: str
    expires_in: int  # seconds until the access token expires

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    type: Optional[str] = None
    exp: Optional[int] = None
    jti: Optional[str] = None  # session id
    scopes: List[str] = []

class SeasonLoginRequest(BaseModel):
    email: EmailStr
    password: str
    season_id: int

class SeasonLoginResponse(BaseModel):
    token: str
    user: UserSummary
    role: str
    season_id: int
    permissions: List[str]
