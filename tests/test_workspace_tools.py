from __future__ import annotations

import pytest
from mcp.server.fastmcp.exceptions import ToolError

import app


@pytest.mark.anyio("asyncio")
async def test_members_tolerate_missing_person_info(huly):
    members = await app.huly_workspace_members()

    assert members == [
        {"person_id": "uuid-john", "role": "OWNER", "name": "John Doe", "email": "john@example.com"},
        {"person_id": "uuid-jane", "role": "USER", "name": None, "email": None},
    ]
    assert await app.huly_workspace_members(limit=1) == members[:1]


@pytest.mark.anyio("asyncio")
async def test_update_member_role(huly):
    result = await app.huly_workspace_update_member_role(account_id="uuid-jane", role="MAINTAINER")

    assert result == {"account_id": "uuid-jane", "role": "MAINTAINER", "updated": True}
    assert huly.account.calls == [("updateWorkspaceRole", ("uuid-jane", "MAINTAINER"))]


@pytest.mark.anyio("asyncio")
async def test_update_member_role_rejects_unknown_role(huly):
    with pytest.raises(ValueError):
        await app.huly_workspace_update_member_role(account_id="uuid-jane", role="SUPERUSER")

    assert huly.account.calls == []


@pytest.mark.anyio("asyncio")
async def test_workspace_info_formats_version(huly):
    info = await app.huly_workspace_info()

    assert info["name"] == "Acme"
    assert info["version"] == "0.7.42"
    assert info["allow_guest_sign_up"] is True


@pytest.mark.anyio("asyncio")
async def test_list_workspaces(huly):
    workspaces = await app.huly_workspace_list()

    assert [ws["uuid"] for ws in workspaces] == ["ws-uuid", "ws-2"]
    assert workspaces[1]["last_visit"] == 4


@pytest.mark.anyio("asyncio")
async def test_create_and_delete_workspace(huly):
    created = await app.huly_workspace_create(name=" Design Team ", region="europe")
    assert created == {"uuid": "ws-new", "url": "design-team", "name": "Design Team"}

    deleted = await app.huly_workspace_delete()
    assert deleted == {"deleted": True}
    assert huly.account.calls == [("createWorkspace", ("Design Team", "europe")), ("deleteWorkspace", ())]


@pytest.mark.anyio("asyncio")
async def test_profile_read_and_update(huly):
    profile = await app.huly_workspace_profile()
    assert profile["first_name"] == "John"
    assert profile["city"] == "Berlin"
    assert profile["is_public"] is False

    nothing = await app.huly_workspace_update_profile()
    assert nothing == {"updated": False}

    updated = await app.huly_workspace_update_profile(city="Paris", social_links={"github": "jdoe"}, is_public=True)
    assert updated == {"updated": True}
    assert huly.account.calls[-1] == (
        "setMyProfile",
        ({"city": "Paris", "socialLinks": {"github": "jdoe"}, "isPublic": True},),
    )


@pytest.mark.anyio("asyncio")
async def test_profile_missing(huly):
    huly.account.profile = None

    assert await app.huly_workspace_profile(person_uuid="uuid-ghost") is None


@pytest.mark.anyio("asyncio")
async def test_guest_settings_only_sends_provided_flags(huly):
    result = await app.huly_workspace_guest_settings(allow_sign_up=False)

    assert result == {"updated": True, "allow_read_only": None, "allow_sign_up": False}
    assert huly.account.calls == [("updateAllowGuestSignUp", (False,))]


@pytest.mark.anyio("asyncio")
async def test_regions(huly):
    assert await app.huly_workspace_regions() == [
        {"region": "europe", "name": "Europe"},
        {"region": "", "name": "Default"},
    ]


@pytest.mark.anyio("asyncio")
async def test_account_service_unavailable(huly):
    huly.account = None

    with pytest.raises(ToolError) as excinfo:
        await app.huly_workspace_info()

    assert str(excinfo.value) == "Connection error: Account service is not available"
