from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from ....domain.access import MAX_RESTRICTION_DAYS


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str


class AdminRefreshRequest(BaseModel):
    refresh_token: str


class AdminCreateRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)


class AdminUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[str] = None
    permissions: Optional[List[str]] = None


class AdminRestrictRequest(BaseModel):
    is_active: bool
    reason: Optional[str] = None


class UserStatusRequest(BaseModel):
    status: str
    reason: Optional[str] = None
    duration: Optional[int] = Field(
        default=None, gt=0, le=MAX_RESTRICTION_DAYS, description="Restriction length in days"
    )


class SettingsUpdateRequest(BaseModel):
    settings: Dict[str, str]


class AdminResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    permissions: List[str]
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime


class AdminAuthResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminResponse


class ActivityLogResponse(BaseModel):
    id: int
    admin_id: int
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Dict[str, Any]
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool
    created_at: datetime


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def of(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=(total + limit - 1) // limit)
