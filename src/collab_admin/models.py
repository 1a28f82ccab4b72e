from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SupplierRequest(BaseModel):
    """A supplier to onboard: one group, one team and a batch of guest invitations."""

    name: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    contact_emails: List[str] = Field(default_factory=list)
    expiry_days: int = Field(default=90, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("name", "domain")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("contact_emails")
    @classmethod
    def clean_emails(cls, value: List[str]) -> List[str]:
        return [email.strip() for email in value if email and email.strip()]


class InviteStatus(str, Enum):
    INVITED = "Invited"
    INVITE_FAILED = "InviteFailed"
    MEMBERSHIP_FAILED = "MembershipFailed"


@dataclass
class InvitedUser:
    email: str
    status: InviteStatus
    guest_user_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ProvisioningResult:
    group_id: str
    group_name: str
    mail_nickname: str
    expires_on: str
    site_url: Optional[str] = None
    sensitivity_label_applied: bool = False
    dlp_policy_updated: bool = False
    invited_users: List[InvitedUser] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for user in payload["invited_users"]:
            user["status"] = user["status"].value
        return payload


@dataclass(frozen=True)
class GuestUserRecord:
    user_id: str
    user_principal_name: str
    mail: Optional[str] = None

    @classmethod
    def from_graph(cls, item: Dict[str, Any]) -> "GuestUserRecord":
        return cls(
            user_id=item.get("id", ""),
            user_principal_name=item.get("userPrincipalName") or "",
            mail=item.get("mail") or None,
        )


@dataclass
class DomainSummaryRow:
    external_domain: str
    user_count: int
    sample_users: List[str] = field(default_factory=list)

    @property
    def sample_users_text(self) -> str:
        return "; ".join(self.sample_users)


@dataclass(frozen=True)
class Group:
    id: str
    display_name: str
    mail_nickname: str


@dataclass(frozen=True)
class SiteInfo:
    id: str
    web_url: str


@dataclass(frozen=True)
class Invitation:
    id: Optional[str]
    invited_user_id: Optional[str]
    status: Optional[str] = None
    redeem_url: Optional[str] = None


@dataclass
class DlpPolicy:
    name: str
    sharepoint_locations: List[str] = field(default_factory=list)
    added_locations: List[str] = field(default_factory=list)

    def has_location(self, url: str) -> bool:
        wanted = url.rstrip("/").lower()
        return any(location.rstrip("/").lower() == wanted for location in self.sharepoint_locations)

    def add_sharepoint_location(self, url: str) -> bool:
        if self.has_location(url):
            return False
        self.sharepoint_locations.append(url)
        self.added_locations.append(url)
        return True
