from __future__ import annotations

from typing import List, Optional

from .config import TeamSettings
from .graph_client import GraphClient
from .models import GuestUserRecord, Group, Invitation, SiteInfo

GUEST_USERS_PATH = (
    "/v1.0/users?$filter=userType eq 'Guest'"
    "&$select=id,userPrincipalName,mail&$top=999"
)


class DirectoryClient:
    """Groups, teams, sites and guest invitations through Microsoft Graph."""

    def __init__(self, graph: GraphClient):
        self.graph = graph

    def create_group(self, display_name: str, mail_nickname: str, description: str) -> Group:
        payload = {
            "displayName": display_name,
            "mailNickname": mail_nickname,
            "description": description,
            "groupTypes": ["Unified"],
            "mailEnabled": True,
            "securityEnabled": False,
            "visibility": "Private",
        }
        data = self.graph.post("/v1.0/groups", json=payload).json()
        return Group(
            id=data["id"],
            display_name=data.get("displayName", display_name),
            mail_nickname=data.get("mailNickname", mail_nickname),
        )

    def create_team(self, group_id: str, settings: TeamSettings) -> None:
        self.graph.put(f"/v1.0/groups/{group_id}/team", json=settings.to_graph())

    def get_group_site(self, group_id: str) -> Optional[SiteInfo]:
        response = self.graph.get(f"/v1.0/groups/{group_id}/sites/root", allowed_statuses=(404,))
        if response.status_code == 404:
            return None
        data = response.json()
        web_url = data.get("webUrl")
        if not web_url:
            return None
        return SiteInfo(id=data.get("id", ""), web_url=web_url)

    def invite_guest_user(self, email: str, redirect_url: str, message: str) -> Invitation:
        payload = {
            "invitedUserEmailAddress": email,
            "inviteRedirectUrl": redirect_url,
            "sendInvitationMessage": True,
            "invitedUserMessageInfo": {"customizedMessageBody": message},
        }
        data = self.graph.post("/v1.0/invitations", json=payload).json()
        invited_user = data.get("invitedUser") or {}
        return Invitation(
            id=data.get("id"),
            invited_user_id=invited_user.get("id"),
            status=data.get("status"),
            redeem_url=data.get("inviteRedeemUrl"),
        )

    def add_group_member(self, group_id: str, user_id: str) -> None:
        payload = {"@odata.id": self.graph.url(f"/v1.0/directoryObjects/{user_id}")}
        self.graph.post(f"/v1.0/groups/{group_id}/members/$ref", json=payload)

    def list_guest_users(self) -> List[GuestUserRecord]:
        return [GuestUserRecord.from_graph(item) for item in self.graph.iter_values(GUEST_USERS_PATH)]
