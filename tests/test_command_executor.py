"""Tests for command execution."""

from unittest.mock import patch

import pytest

from nexus_oracle.chains.command_executor import execute
from nexus_oracle.core.errors import CommandValidationError
from nexus_oracle.core.schemas_oracle import ActionKind, BroadcastType, IntentDescriptor, Role
from tests.fakes.fake_supabase import mock_supabase, rows

TEAM_ID = "11111111-1111-4111-8111-111111111111"
USER_ID = "22222222-2222-4222-8222-222222222222"
OTHER_TEAM_ID = "99999999-9999-4999-8999-999999999999"


class TestNoop:
    def test_none_intent(self):
        result = execute(None, Role.BUILDER, TEAM_ID, USER_ID)
        assert result.executed is False
        assert result.action == ActionKind.NONE

    def test_none_action(self):
        result = execute(IntentDescriptor(action=ActionKind.NONE), "lead", TEAM_ID, USER_ID)
        assert result.executed is False


class TestBroadcast:
    def test_lead_broadcast_all_writes_message(self):
        sb = mock_supabase([rows({"id": "msg-1"})])
        intent = IntentDescriptor(action=ActionKind.BROADCAST, content="50% done")

        with patch("nexus_oracle.db.messages.get_supabase", return_value=sb):
            result = execute(intent, Role.LEAD, TEAM_ID, USER_ID)

        assert result.executed is True
        assert result.message == '✅ Broadcast sent: "50% done"'
        sb.table.assert_called_with("messages")
        row = sb.table.return_value.insert.call_args.args[0]
        assert row["is_broadcast"] is True
        assert row["broadcast_type"] == "all"
        assert row["sender_id"] == USER_ID
        assert row["content"] == "50% done"
        assert "team_id" not in row

    def test_team_broadcast_without_team_rejected_before_write(self):
        intent = IntentDescriptor(
            action=ActionKind.BROADCAST, content="hello", broadcast_type=BroadcastType.TEAM
        )
        with patch("nexus_oracle.chains.command_executor.create_message") as create:
            with pytest.raises(CommandValidationError) as exc_info:
                execute(intent, Role.LEAD, None, USER_ID)
        create.assert_not_called()
        assert exc_info.value.field == "team_id"
        assert exc_info.value.status == 400

    def test_role_broadcast_targets_normalized_role(self):
        intent = IntentDescriptor(
            action=ActionKind.BROADCAST,
            content="office hours",
            broadcast_type=BroadcastType.ROLE,
            target_value="Mentors",
        )
        with patch("nexus_oracle.chains.command_executor.create_message", return_value={"id": "m"}) as create:
            execute(intent, Role.LEAD, None, USER_ID)
        message = create.call_args.args[0]
        assert message.broadcast_target == "mentor"
        assert message.broadcast_type == BroadcastType.ROLE

    def test_role_broadcast_with_bad_role(self):
        intent = IntentDescriptor(
            action=ActionKind.BROADCAST, content="x", broadcast_type=BroadcastType.ROLE, target_value="ceo"
        )
        with pytest.raises(CommandValidationError):
            execute(intent, Role.LEAD, None, USER_ID)

    def test_empty_content_rejected(self):
        with pytest.raises(CommandValidationError) as exc_info:
            execute(IntentDescriptor(action=ActionKind.BROADCAST, content="  "), Role.LEAD, None, USER_ID)
        assert exc_info.value.field == "content"

    def test_oversized_content_rejected(self):
        intent = IntentDescriptor(action=ActionKind.BROADCAST, content="x" * 2001)
        with patch("nexus_oracle.chains.command_executor.create_message") as create:
            with pytest.raises(CommandValidationError):
                execute(intent, Role.LEAD, None, USER_ID)
        create.assert_not_called()

    def test_builder_cannot_broadcast(self):
        intent = IntentDescriptor(action=ActionKind.BROADCAST, content="hi all")
        with patch("nexus_oracle.chains.command_executor.create_message") as create:
            result = execute(intent, Role.BUILDER, TEAM_ID, USER_ID)
        create.assert_not_called()
        assert result.executed is True
        assert result.message.startswith("❌")

    def test_store_failure_reported(self):
        intent = IntentDescriptor(action=ActionKind.BROADCAST, content="hi all")
        with patch(
            "nexus_oracle.chains.command_executor.create_message",
            side_effect=RuntimeError("connection reset"),
        ):
            result = execute(intent, Role.MENTOR, TEAM_ID, USER_ID)
        assert result.executed is True
        assert result.message.startswith("❌")
        assert "connection reset" in result.message


class TestCreateUpdate:
    def test_without_team_context(self):
        intent = IntentDescriptor(action=ActionKind.CREATE_UPDATE, update_text="shipped")
        sb = mock_supabase()
        with patch("nexus_oracle.db.updates.get_supabase", return_value=sb):
            result = execute(intent, Role.BUILDER, None, USER_ID)

        assert result.executed is True
        assert result.message.startswith("❌ No team context provided")
        sb.table.return_value.insert.assert_not_called()

    def test_creates_daily_update(self):
        sb = mock_supabase([rows({"id": "upd-1"})])
        intent = IntentDescriptor(action=ActionKind.CREATE_UPDATE, update_text="Finished the login flow")

        with patch("nexus_oracle.db.updates.get_supabase", return_value=sb):
            result = execute(intent, Role.BUILDER, TEAM_ID, USER_ID)

        assert result.message == '✅ Update created: "Finished the login flow"'
        assert result.data == {"update_id": "upd-1"}
        row = sb.table.return_value.insert.call_args.args[0]
        assert row == {
            "team_id": TEAM_ID,
            "content": "Finished the login flow",
            "type": "daily",
            "created_by": USER_ID,
        }

    def test_guest_denied(self):
        intent = IntentDescriptor(action=ActionKind.CREATE_UPDATE, update_text="x")
        with patch("nexus_oracle.chains.command_executor.create_update") as create:
            result = execute(intent, Role.GUEST, TEAM_ID, USER_ID)
        create.assert_not_called()
        assert result.message.startswith("❌")


class TestUpdateStatus:
    def test_without_team_context(self):
        intent = IntentDescriptor(action=ActionKind.UPDATE_STATUS, status_text="testing")
        with patch("nexus_oracle.chains.command_executor.upsert_team_status") as upsert:
            result = execute(intent, Role.BUILDER, None, USER_ID)
        upsert.assert_not_called()
        assert result.message.startswith("❌ No team context provided")

    def test_upserts_status(self):
        intent = IntentDescriptor(action=ActionKind.UPDATE_STATUS, status_text="Heads-down on user testing")
        with patch("nexus_oracle.chains.command_executor.upsert_team_status") as upsert:
            result = execute(intent, Role.BUILDER, TEAM_ID, USER_ID)
        upsert.assert_called_once_with(TEAM_ID, "Heads-down on user testing")
        assert result.message == '✅ Team status updated to: "Heads-down on user testing"'

    def test_oversized_status(self):
        intent = IntentDescriptor(action=ActionKind.UPDATE_STATUS, status_text="x" * 501)
        with pytest.raises(CommandValidationError) as exc_info:
            execute(intent, Role.BUILDER, TEAM_ID, USER_ID)
        assert exc_info.value.field == "status_text"


class TestAssignUser:
    def test_user_not_found(self):
        intent = IntentDescriptor(action=ActionKind.ASSIGN_USER, target_value="Nobody", team_name="Atlas")
        with patch("nexus_oracle.chains.command_executor.find_members_by_name", return_value=[]), patch(
            "nexus_oracle.chains.command_executor.assign_member_team"
        ) as assign:
            result = execute(intent, Role.LEAD, None, USER_ID)
        assign.assert_not_called()
        assert result.executed is True
        assert result.message.startswith("❌ User not found")

    def test_team_not_found(self):
        intent = IntentDescriptor(action=ActionKind.ASSIGN_USER, target_value="Jordan", team_name="Nowhere")
        with patch(
            "nexus_oracle.chains.command_executor.find_members_by_name",
            return_value=[{"id": "m1", "name": "Jordan"}],
        ), patch("nexus_oracle.chains.command_executor.find_team_by_name", return_value=None), patch(
            "nexus_oracle.chains.command_executor.assign_member_team"
        ) as assign:
            result = execute(intent, Role.LEAD, None, USER_ID)
        assign.assert_not_called()
        assert result.message.startswith("❌ Team not found")

    def test_assigns_exact_name_match(self):
        intent = IntentDescriptor(action=ActionKind.ASSIGN_USER, target_value="jordan", team_name="Atlas")
        candidates = [{"id": "m1", "name": "Jordana Smith"}, {"id": "m2", "name": "Jordan"}]
        with patch(
            "nexus_oracle.chains.command_executor.find_members_by_name", return_value=candidates
        ), patch(
            "nexus_oracle.chains.command_executor.find_team_by_name",
            return_value={"id": OTHER_TEAM_ID, "name": "Atlas"},
        ), patch("nexus_oracle.chains.command_executor.assign_member_team") as assign:
            result = execute(intent, Role.LEAD, None, USER_ID)

        assign.assert_called_once_with("m2", OTHER_TEAM_ID)
        assert result.message == '✅ User "Jordan" assigned to team Atlas'

    def test_unassign(self):
        intent = IntentDescriptor(action=ActionKind.ASSIGN_USER, target_value="Jordan")
        with patch(
            "nexus_oracle.chains.command_executor.find_members_by_name",
            return_value=[{"id": "m2", "name": "Jordan"}],
        ), patch("nexus_oracle.chains.command_executor.assign_member_team") as assign:
            result = execute(intent, Role.LEAD, None, USER_ID)
        assign.assert_called_once_with("m2", None)
        assert "moved to unassigned section" in result.message

    def test_invalid_team_id(self):
        intent = IntentDescriptor(action=ActionKind.ASSIGN_USER, target_value="Jordan", team_id="not-a-uuid")
        with pytest.raises(CommandValidationError) as exc_info:
            execute(intent, Role.LEAD, None, USER_ID)
        assert exc_info.value.field == "team_id"

    def test_mentor_denied(self):
        intent = IntentDescriptor(action=ActionKind.ASSIGN_USER, target_value="Jordan")
        with patch("nexus_oracle.chains.command_executor.find_members_by_name") as find:
            result = execute(intent, Role.MENTOR, None, USER_ID)
        find.assert_not_called()
        assert result.message.startswith("❌")


class TestSendMessage:
    def test_to_role(self):
        intent = IntentDescriptor(
            action=ActionKind.SEND_MESSAGE, target_type="role", target_value="mentors", content="deck review?"
        )
        with patch("nexus_oracle.chains.command_executor.create_message", return_value={"id": "m"}) as create:
            result = execute(intent, Role.BUILDER, TEAM_ID, USER_ID)

        message = create.call_args.args[0]
        assert message.receiver_role == Role.MENTOR
        assert message.is_broadcast is False
        assert result.message == "✅ Message sent to mentors: deck review?"

    def test_to_team(self):
        intent = IntentDescriptor(
            action=ActionKind.SEND_MESSAGE, target_type="team", target_value="Atlas", content="standup moved"
        )
        with patch(
            "nexus_oracle.chains.command_executor.find_team_by_name",
            return_value={"id": OTHER_TEAM_ID, "name": "Atlas"},
        ), patch("nexus_oracle.chains.command_executor.create_message", return_value={"id": "m"}) as create:
            result = execute(intent, Role.MENTOR, None, USER_ID)

        assert create.call_args.args[0].team_id == OTHER_TEAM_ID
        assert "team Atlas" in result.message

    def test_missing_target(self):
        intent = IntentDescriptor(action=ActionKind.SEND_MESSAGE, content="hi")
        with pytest.raises(CommandValidationError) as exc_info:
            execute(intent, Role.BUILDER, TEAM_ID, USER_ID)
        assert exc_info.value.field == "target_type"
