"""JSON-RPC client for the Huly account service."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from huly_errors import HulyAuthError, HulyConnectionError

logger = logging.getLogger(__name__)

__all__ = ["AccountClient", "is_auth_status"]

_AUTH_STATUSES = (
    "platform:status:Unauthorized",
    "platform:status:Forbidden",
    "platform:status:InvalidPassword",
    "platform:status:AccountNotFound",
    "platform:status:AccountNotConfirmed",
    "platform:status:WorkspaceNotFound",
)


def _status_code(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error", payload)
    if isinstance(error, dict):
        code = error.get("code")
        return str(code) if code else None
    return None


def is_auth_status(payload: Any) -> bool:
    return _status_code(payload) in _AUTH_STATUSES


class AccountClient:
    """Calls ``{method, params}`` RPCs against the account service."""

    def __init__(self, http: httpx.AsyncClient, url: str, *, token: str | None = None) -> None:
        self._http = http
        self._url = url
        self._token = token

    async def call(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        body = {"method": method, "params": dict(params or {})}
        try:
            response = await self._http.post(self._url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise HulyConnectionError(f"Account service call {method} failed: {exc}", cause=exc) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if response.status_code in (401, 403) or is_auth_status(payload):
            raise HulyAuthError(f"Account service rejected {method}: {_status_code(payload) or response.status_code}")
        if response.is_error:
            raise HulyConnectionError(
                f"Account service call {method} failed with status {response.status_code}: {response.text}",
                cause=payload,
            )
        if not isinstance(payload, dict):
            raise HulyConnectionError(f"Account service call {method} returned an invalid response")
        if payload.get("error"):
            raise HulyConnectionError(
                f"Account service call {method} failed: {_status_code(payload) or payload['error']}",
                cause=payload,
            )
        return payload.get("result")

    async def get_workspace_members(self) -> list[dict[str, Any]]:
        return list(await self.call("getWorkspaceMembers") or [])

    async def get_person_info(self, person: str) -> dict[str, Any] | None:
        return await self.call("getPersonInfo", {"account": person})

    async def update_workspace_role(self, account: str, role: str) -> None:
        await self.call("updateWorkspaceRole", {"targetAccount": account, "targetRole": role})

    async def get_workspace_info(self) -> dict[str, Any]:
        return dict(await self.call("getWorkspaceInfo", {"updateLastVisit": False}) or {})

    async def get_user_workspaces(self) -> list[dict[str, Any]]:
        return list(await self.call("getUserWorkspaces") or [])

    async def create_workspace(self, name: str, region: str | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"workspaceName": name}
        if region is not None:
            params["region"] = region
        return dict(await self.call("createWorkspace", params) or {})

    async def delete_workspace(self) -> None:
        await self.call("deleteWorkspace")

    async def get_user_profile(self, person_uuid: str | None = None) -> dict[str, Any] | None:
        params = {"personUuid": person_uuid} if person_uuid else {}
        return await self.call("getUserProfile", params)

    async def set_my_profile(self, profile: Mapping[str, Any]) -> None:
        await self.call("setMyProfile", dict(profile))

    async def update_allow_read_only_guests(self, allowed: bool) -> None:
        await self.call("updateAllowReadOnlyGuests", {"readOnlyGuestsAllowed": allowed})

    async def update_allow_guest_sign_up(self, allowed: bool) -> None:
        await self.call("updateAllowGuestSignUp", {"guestSignUpAllowed": allowed})

    async def get_region_info(self) -> list[dict[str, Any]]:
        return list(await self.call("getRegionInfo") or [])
