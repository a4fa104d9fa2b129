from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, Enum):
    """Grant levels stored on admins/{uid} and admins_by_email/{email}."""
    SUPER_ADMIN = "super_admin"   # Reviews requests, manages admins
    ADMIN = "admin"               # Manages events and bookings


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def grant_role(data: Optional[Dict[str, Any]]) -> Role:
    """Role carried by a grant document. Older documents flag super admins with `super: true`."""
    data = data or {}
    if data.get("role") == Role.SUPER_ADMIN or data.get("super") is True:
        return Role.SUPER_ADMIN
    return Role.ADMIN


class AdminGrant(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str
    role: Role = Role.ADMIN
    email: Optional[str] = None
    invited_by: Optional[str] = Field(None, alias="invitedBy")
    approved_by: Optional[str] = Field(None, alias="approvedBy")
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class AdminRequestProfile(BaseModel):
    first_name: str = Field(..., alias="firstName", min_length=1)
    middle_name: Optional[str] = Field(None, alias="middleName")
    last_name: str = Field(..., alias="lastName", min_length=1)
    phone: Optional[str] = None
    dob: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class AdminRegistration(AdminRequestProfile):
    email: EmailStr
    password: str = Field(..., min_length=6)


class AdminRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    uid: str
    email: Optional[str] = None
    first_name: str = Field("", alias="firstName")
    middle_name: Optional[str] = Field(None, alias="middleName")
    last_name: str = Field("", alias="lastName")
    phone: Optional[str] = None
    dob: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    approved_by: Optional[str] = Field(None, alias="approvedBy")
    approved_at: Optional[datetime] = Field(None, alias="approvedAt")
    granted_role: Optional[Role] = Field(None, alias="grantedRole")
    rejected_by: Optional[str] = Field(None, alias="rejectedBy")
    rejected_at: Optional[datetime] = Field(None, alias="rejectedAt")

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}"


class ApprovalPayload(BaseModel):
    role: Role = Role.ADMIN


class InvitePayload(BaseModel):
    email: Optional[EmailStr] = None
    uid: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Role


class AccessState(BaseModel):
    """What the signed-in user may see, as computed from trusted state."""
    model_config = ConfigDict(populate_by_name=True)

    is_admin: bool = Field(False, alias="isAdmin")
    is_super_admin: bool = Field(False, alias="isSuperAdmin")
    is_admin_pending: bool = Field(False, alias="isAdminPending")
