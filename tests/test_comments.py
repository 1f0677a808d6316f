from __future__ import annotations

import pytest
from mcp.server.fastmcp.exceptions import ToolError

import app
from huly_operations import classes


@pytest.mark.anyio("asyncio")
async def test_add_and_list_comments_in_order(huly):
    first = await app.huly_comments_add(project="HULY", issue_identifier="1", body="Reproduced on staging")
    await app.huly_comments_add(project="HULY", issue_identifier="HULY-1", body="Fix is in review")

    assert first["issue_identifier"] == "HULY-1"
    assert huly.docs["issue-1"]["comments"] == 2
    message = huly.docs[first["comment_id"]]
    assert message["_class"] == classes.CHAT_MESSAGE
    assert message["collection"] == "comments"

    listed = await app.huly_comments_list(project="HULY", issue_identifier="1")
    assert [comment["body"] for comment in listed] == ["Reproduced on staging", "Fix is in review"]
    assert listed[0]["id"] == first["comment_id"]
    assert listed[0]["edited_on"] is None


@pytest.mark.anyio("asyncio")
async def test_add_comment_rejects_blank_body(huly):
    with pytest.raises(ValueError):
        await app.huly_comments_add(project="HULY", issue_identifier="1", body="   ")


@pytest.mark.anyio("asyncio")
async def test_update_comment_marks_edit_and_skips_identical_body(huly):
    added = await app.huly_comments_add(project="HULY", issue_identifier="1", body="Draft")
    comment_id = added["comment_id"]

    same = await app.huly_comments_update(project="HULY", issue_identifier="1", comment_id=comment_id, body="Draft")
    changed = await app.huly_comments_update(project="HULY", issue_identifier="1", comment_id=comment_id, body="Final")

    assert same["updated"] is False
    assert changed["updated"] is True
    assert huly.docs[comment_id]["message"] == "Final"
    assert huly.docs[comment_id]["editedOn"] is not None


@pytest.mark.anyio("asyncio")
async def test_comment_must_belong_to_issue(huly):
    added = await app.huly_comments_add(project="HULY", issue_identifier="1", body="On issue one")

    with pytest.raises(ToolError) as excinfo:
        await app.huly_comments_delete(project="HULY", issue_identifier="2", comment_id=added["comment_id"])

    assert str(excinfo.value) == f"Comment '{added['comment_id']}' not found on issue 'HULY-2'"
    assert added["comment_id"] in huly.docs


@pytest.mark.anyio("asyncio")
async def test_delete_comment(huly):
    added = await app.huly_comments_add(project="HULY", issue_identifier="1", body="Obsolete")

    result = await app.huly_comments_delete(project="HULY", issue_identifier="1", comment_id=added["comment_id"])

    assert result["deleted"] is True
    assert added["comment_id"] not in huly.docs
    assert await app.huly_comments_list(project="HULY", issue_identifier="1") == []


@pytest.mark.anyio("asyncio")
async def test_thread_replies_under_a_comment(huly):
    comment = await app.huly_comments_add(project="HULY", issue_identifier="1", body="Is this still broken?")
    comment_id = comment["comment_id"]

    first = await app.huly_comments_add_reply(
        project="HULY", issue_identifier="1", comment_id=comment_id, body="Yes, on Safari"
    )
    await app.huly_comments_add_reply(project="HULY", issue_identifier="1", comment_id=comment_id, body="Fixed now")

    assert first["comment_id"] == comment_id
    assert first["issue_identifier"] == "HULY-1"
    reply = huly.docs[first["reply_id"]]
    assert reply["_class"] == classes.THREAD_MESSAGE
    assert reply["attachedTo"] == comment_id
    assert reply["attachedToClass"] == classes.CHAT_MESSAGE
    assert reply["collection"] == "replies"
    assert reply["objectId"] == "issue-1"

    listed = await app.huly_comments_list_replies(project="HULY", issue_identifier="1", comment_id=comment_id)
    assert listed["total"] == 2
    assert [item["body"] for item in listed["replies"]] == ["Yes, on Safari", "Fixed now"]
    assert listed["replies"][0]["comment_id"] == comment_id

    comments = await app.huly_comments_list(project="HULY", issue_identifier="1")
    assert [item["id"] for item in comments] == [comment_id]


@pytest.mark.anyio("asyncio")
async def test_update_and_delete_thread_reply(huly):
    comment = await app.huly_comments_add(project="HULY", issue_identifier="1", body="Question")
    comment_id = comment["comment_id"]
    added = await app.huly_comments_add_reply(project="HULY", issue_identifier="1", comment_id=comment_id, body="Draft")
    reply_id = added["reply_id"]

    same = await app.huly_comments_update_reply(
        project="HULY", issue_identifier="1", comment_id=comment_id, reply_id=reply_id, body="Draft"
    )
    changed = await app.huly_comments_update_reply(
        project="HULY", issue_identifier="1", comment_id=comment_id, reply_id=reply_id, body="Answer"
    )

    assert same["updated"] is False
    assert changed["updated"] is True
    assert huly.docs[reply_id]["message"] == "Answer"
    assert huly.docs[reply_id]["editedOn"] is not None

    deleted = await app.huly_comments_delete_reply(
        project="HULY", issue_identifier="1", comment_id=comment_id, reply_id=reply_id
    )
    assert deleted == {"reply_id": reply_id, "comment_id": comment_id, "deleted": True}
    assert reply_id not in huly.docs


@pytest.mark.anyio("asyncio")
async def test_reply_must_belong_to_comment(huly):
    first = await app.huly_comments_add(project="HULY", issue_identifier="1", body="One")
    second = await app.huly_comments_add(project="HULY", issue_identifier="1", body="Two")
    reply = await app.huly_comments_add_reply(
        project="HULY", issue_identifier="1", comment_id=first["comment_id"], body="Reply to one"
    )

    with pytest.raises(ToolError) as excinfo:
        await app.huly_comments_delete_reply(
            project="HULY", issue_identifier="1", comment_id=second["comment_id"], reply_id=reply["reply_id"]
        )

    assert str(excinfo.value) == (
        f"Reply '{reply['reply_id']}' not found in thread of comment '{second['comment_id']}'"
    )
    assert reply["reply_id"] in huly.docs


@pytest.mark.anyio("asyncio")
async def test_reply_to_unknown_comment(huly):
    with pytest.raises(ToolError) as excinfo:
        await app.huly_comments_add_reply(project="HULY", issue_identifier="1", comment_id="missing", body="Hi")

    assert str(excinfo.value) == "Comment 'missing' not found on issue 'HULY-1'"
    with pytest.raises(ValueError):
        await app.huly_comments_add_reply(project="HULY", issue_identifier="1", comment_id="missing", body=" ")
