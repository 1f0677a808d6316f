from __future__ import annotations

import datetime

import pytest
from mcp.server.fastmcp.exceptions import ToolError

import app
from huly_operations import classes


def _ms(year: int, month: int, day: int) -> int:
    return int(datetime.datetime(year, month, day, tzinfo=datetime.timezone.utc).timestamp() * 1000)


# Milestones


@pytest.mark.anyio("asyncio")
async def test_milestones_list_and_get(huly):
    listed = await app.huly_milestones_list(project="HULY")
    assert [(m["id"], m["label"], m["status"]) for m in listed] == [("milestone-v1", "v1.0", "planned")]

    by_label = await app.huly_milestones_get(project="HULY", milestone="v1.0")
    by_id = await app.huly_milestones_get(project="HULY", milestone="milestone-v1")
    assert by_label == by_id
    assert by_label["description"] == "First release"
    assert by_label["project"] == "HULY"


@pytest.mark.anyio("asyncio")
async def test_milestones_create_starts_planned(huly):
    result = await app.huly_milestones_create(
        project="HULY", label=" v2.0 ", target_date="2026-06-30", description="Second release"
    )

    doc = huly.docs[result["id"]]
    assert result["label"] == "v2.0"
    assert doc["space"] == "project-huly"
    assert doc["status"] == 0
    assert doc["targetDate"] == _ms(2026, 6, 30)


@pytest.mark.anyio("asyncio")
async def test_milestones_update_status_and_noop(huly):
    nothing = await app.huly_milestones_update(project="HULY", milestone="v1.0")
    assert nothing == {"id": "milestone-v1", "updated": False}

    await app.huly_milestones_update(project="HULY", milestone="v1.0", status="in-progress")
    assert huly.docs["milestone-v1"]["status"] == 1

    await app.huly_milestones_update(project="HULY", milestone="v1.0", status="canceled", label="v1.0-final")
    assert huly.docs["milestone-v1"]["status"] == 3
    assert huly.docs["milestone-v1"]["label"] == "v1.0-final"


def test_milestone_status_parsing_accepts_loose_spelling():
    from huly_operations.milestones import milestone_status_name, parse_milestone_status

    assert parse_milestone_status("In Progress") == 1
    assert parse_milestone_status("cancelled") == 3
    assert milestone_status_name(2) == "completed"
    with pytest.raises(ValueError):
        parse_milestone_status("someday")


@pytest.mark.anyio("asyncio")
async def test_milestones_set_and_clear_for_issue(huly):
    result = await app.huly_milestones_set_for_issue(project="HULY", identifier="1", milestone="v1.0")
    assert result == {"identifier": "HULY-1", "milestone_set": True}
    assert huly.docs["issue-1"]["milestone"] == "milestone-v1"

    await app.huly_milestones_set_for_issue(project="HULY", identifier="1")
    assert huly.docs["issue-1"]["milestone"] is None


@pytest.mark.anyio("asyncio")
async def test_milestones_unknown(huly):
    with pytest.raises(ToolError) as excinfo:
        await app.huly_milestones_set_for_issue(project="HULY", identifier="1", milestone="v9")

    assert str(excinfo.value) == "Milestone 'v9' not found in project 'HULY'"


@pytest.mark.anyio("asyncio")
async def test_milestones_delete(huly):
    assert await app.huly_milestones_delete(project="HULY", milestone="v1.0") == {
        "id": "milestone-v1",
        "deleted": True,
    }
    assert "milestone-v1" not in huly.docs


# Components


@pytest.mark.anyio("asyncio")
async def test_components_list_and_get_show_lead_name(huly):
    listed = await app.huly_components_list(project="HULY")
    assert [(c["label"], c["lead"]) for c in listed] == [("Backend", "Jane Smith")]

    component = await app.huly_components_get(project="HULY", component="Backend")
    assert component["description"] == "API and workers"
    assert component["lead"] == "Jane Smith"


@pytest.mark.anyio("asyncio")
async def test_components_create_resolves_lead_by_email(huly):
    result = await app.huly_components_create(project="HULY", label="Frontend", lead="john@example.com")

    doc = huly.docs[result["id"]]
    assert doc["label"] == "Frontend"
    assert doc["lead"] == "person-john"
    assert doc["description"] == ""


@pytest.mark.anyio("asyncio")
async def test_components_create_unknown_lead(huly):
    with pytest.raises(ToolError) as excinfo:
        await app.huly_components_create(project="HULY", label="Frontend", lead="ghost@example.com")

    assert str(excinfo.value) == "Person 'ghost@example.com' not found"
    assert [doc["label"] for doc in huly.of_class(classes.COMPONENT)] == ["Backend"]


@pytest.mark.anyio("asyncio")
async def test_components_update_clears_lead(huly):
    result = await app.huly_components_update(project="HULY", component="Backend", lead="", description="API")

    assert result == {"id": "component-backend", "updated": True}
    assert huly.docs["component-backend"]["lead"] is None
    assert huly.docs["component-backend"]["description"] == "API"


@pytest.mark.anyio("asyncio")
async def test_components_set_for_issue_and_delete(huly):
    result = await app.huly_components_set_for_issue(project="HULY", identifier="HULY-2", component="Backend")
    assert result == {"identifier": "HULY-2", "component_set": True}
    assert huly.docs["issue-2"]["component"] == "component-backend"

    await app.huly_components_delete(project="HULY", component="component-backend")
    assert "component-backend" not in huly.docs


@pytest.mark.anyio("asyncio")
async def test_components_are_scoped_to_project(huly):
    with pytest.raises(ToolError) as excinfo:
        await app.huly_components_get(project="OPS", component="Backend")

    assert str(excinfo.value) == "Component 'Backend' not found in project 'OPS'"


# Issue templates


@pytest.mark.anyio("asyncio")
async def test_templates_list_and_get(huly):
    listed = await app.huly_templates_list(project="HULY")
    assert listed[0]["title"] == "Bug report"
    assert listed[0]["priority"] == "urgent"
    assert listed[0]["assignee"] == "Jane Smith"

    template = await app.huly_templates_get(project="HULY", template="Bug report")
    assert template["description"] == "Steps to reproduce"
    assert template["component"] == "Backend"
    assert template["estimation"] == 2


@pytest.mark.anyio("asyncio")
async def test_templates_create_and_update(huly):
    created = await app.huly_templates_create(
        project="HULY", title="Chore", priority="low", assignee="John Doe", component="Backend"
    )
    doc = huly.docs[created["id"]]
    assert doc["priority"] == 4
    assert doc["assignee"] == "person-john"
    assert doc["component"] == "component-backend"

    updated = await app.huly_templates_update(project="HULY", template="Chore", assignee="", component="")
    assert updated["updated"] is True
    assert huly.docs[created["id"]]["assignee"] is None
    assert huly.docs[created["id"]]["component"] is None


@pytest.mark.anyio("asyncio")
async def test_templates_create_unknown_component(huly):
    with pytest.raises(ToolError) as excinfo:
        await app.huly_templates_create(project="HULY", title="Chore", component="Frontend")

    assert "Component 'Frontend' not found" in str(excinfo.value)


@pytest.mark.anyio("asyncio")
async def test_create_issue_from_template_uses_template_values(huly):
    result = await app.huly_templates_create_issue(project="HULY", template="Bug report")

    assert result["identifier"] == "HULY-4"
    issue = huly.docs[result["issue_id"]]
    assert issue["title"] == "Bug report"
    assert issue["priority"] == 1
    assert issue["assignee"] == "person-jane"
    assert issue["component"] == "component-backend"
    assert issue["estimation"] == 2
    assert huly.markup[issue["description"]] == "Steps to reproduce"


@pytest.mark.anyio("asyncio")
async def test_create_issue_from_template_overrides(huly):
    result = await app.huly_templates_create_issue(
        project="HULY",
        template="template-bug",
        title="Login bug",
        priority="medium",
        assignee="john@example.com",
        status="Todo",
    )

    issue = huly.docs[result["issue_id"]]
    assert issue["title"] == "Login bug"
    assert issue["priority"] == 3
    assert issue["assignee"] == "person-john"
    assert issue["status"] == "status-todo"


@pytest.mark.anyio("asyncio")
async def test_templates_delete_and_missing(huly):
    await app.huly_templates_delete(project="HULY", template="Bug report")

    with pytest.raises(ToolError) as excinfo:
        await app.huly_templates_get(project="HULY", template="Bug report")

    assert str(excinfo.value) == "Issue template 'Bug report' not found in project 'HULY'"
