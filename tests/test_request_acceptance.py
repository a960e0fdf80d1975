"""Tests for the request-acceptance workflow."""
from unittest.mock import MagicMock

import pytest
from transitions import MachineError

from bountyexpo.backend.modules.bounty.enums.acceptance_status_enum import AcceptanceErrorCode, AcceptanceStatus
from bountyexpo.backend.modules.bounty.machines.acceptance_state_machine import (
    AcceptanceAttempt,
    AcceptanceState,
    AcceptanceStateMachine,
)
from bountyexpo.backend.modules.bounty.models.request_board import RequestBoard
from bountyexpo.backend.modules.bounty.services.request_acceptance_service import RequestAcceptanceService
from bountyexpo.shared.modules.bounty.enums.bounty_status_enum import BountyStatus
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequestWithDetails
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode, BountyRequestNotFoundError


class TestBalanceCheck:
    def test_insufficient_balance_touches_nothing(self, marketplace, board_factory, acceptance_service, notifier):
        board = board_factory()
        before = board.model_dump()
        marketplace.calls.clear()

        outcome = acceptance_service.accept_request(board, "r-1", balance=20.0)

        assert outcome.status == AcceptanceStatus.ABORTED
        assert outcome.error_code == AcceptanceErrorCode.INSUFFICIENT_BALANCE
        assert outcome.dialog.title == "Insufficient Balance"
        assert outcome.dialog.actions == ["Cancel", "Add Money"]
        assert "$50.00" in outcome.dialog.message
        assert marketplace.calls == []
        notifier.dispatch.assert_not_called()

        after = board.model_dump()
        for field in ("bounty_requests", "my_bounties", "in_progress_bounties"):
            assert after[field] == before[field]
        assert board.show_add_money is True

    def test_honor_bounty_skips_balance_check(self, backend, board_factory, acceptance_service):
        backend.add_bounty(id="b-h", title="For glory", amount=500.0, is_for_honor=True, poster_id="poster-1")
        backend.add_request(id="r-h", bounty_id="b-h", hunter_id="hunter-1")
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-h", balance=0)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert "Escrow" not in outcome.dialog.message

    def test_unjoined_request_checks_bounty_from_my_bounties(self, backend, acceptance_service):
        bounty = Bounty(id="b-9", title="Paint the shed", amount=50.0, poster_id="v")
        request = BountyRequestWithDetails(id="r-9", bounty_id="b-9", hunter_id="h")
        board = RequestBoard(viewer_id="v", bounty_requests=[request], my_bounties=[bounty])

        outcome = acceptance_service.accept_request(board, "r-9", balance=0)

        assert outcome.status == AcceptanceStatus.ABORTED
        assert outcome.error_code == AcceptanceErrorCode.INSUFFICIENT_BALANCE
        assert backend.calls == []
        assert [r.id for r in board.bounty_requests] == ["r-9"]
        assert board.find_my_bounty("b-9").status == BountyStatus.OPEN

    def test_loading_flags_are_lowered_after_abort(self, marketplace, board_factory, acceptance_service):
        board = board_factory()
        acceptance_service.accept_request(board, "r-1", balance=0)
        assert not (board.loading.requests or board.loading.my_bounties or board.loading.in_progress)


class TestAcceptSuccess:
    def test_competing_requests_are_cleaned_up(self, marketplace, board_factory, acceptance_service, notifier):
        board = board_factory()
        assert {r.id for r in board.bounty_requests} == {"r-1", "r-2"}

        outcome = acceptance_service.accept_request(board, "r-1", balance=100.0)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert outcome.degraded_steps == []
        assert "r-2" not in marketplace.requests
        assert marketplace.requests["r-1"].status == "accepted"
        assert marketplace.bounties["b-1"].status == BountyStatus.IN_PROGRESS
        assert marketplace.bounties["b-1"].accepted_by == "hunter-1"
        assert marketplace.list_requests(bounty_id="b-1", status="pending") == []

        assert board.bounty_requests == []
        assert board.find_my_bounty("b-1").status == BountyStatus.IN_PROGRESS
        assert not board.loading.requests

    def test_conversation_and_welcome_message(self, marketplace, board_factory, acceptance_service):
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100.0)

        assert outcome.conversation_id == "conv-1"
        assert outcome.conversation_is_local is False
        conversation = marketplace.conversations["conv-1"]
        assert conversation["participant_ids"] == ["poster-1", "hunter-1"]
        assert conversation["name"] == "alice"
        assert marketplace.messages[0]["text"] == (
            "Welcome! You've been selected for: \"Fix the fence\". Let's coordinate the details."
        )

    def test_notification_and_paid_dialog(self, marketplace, board_factory, acceptance_service, notifier):
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100.0)

        notifier.dispatch.assert_called_once()
        notification = notifier.dispatch.call_args[0][0]
        assert notification.user_id == "hunter-1"
        assert notification.data == {"bountyId": "b-1", "posterId": "poster-1", "amount": 50.0}
        assert outcome.dialog.title == "Request Accepted"
        assert "You've accepted alice for \"Fix the fence\"" in outcome.dialog.message
        assert "Escrow: $50.00" in outcome.dialog.message

    def test_on_bounty_accepted_callback(self, marketplace, board_factory, acceptance_service):
        callback = MagicMock(side_effect=RuntimeError("listener broke"))
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100.0, on_bounty_accepted=callback)

        callback.assert_called_once_with("b-1")
        assert outcome.status == AcceptanceStatus.SUCCEEDED

    def test_viewer_as_hunter_gets_bounty_in_progress_once(self, backend, board_factory, acceptance_service):
        backend.add_bounty(id="b-self", title="Self", amount=0, poster_id="poster-1")
        backend.add_request(id="r-self", bounty_id="b-self", hunter_id="poster-1")
        board = board_factory()

        acceptance_service.accept_request(board, "r-self", balance=0)

        assert [b.id for b in board.in_progress_bounties] == ["b-self"]

    def test_local_patch_is_idempotent(self, acceptance_service):
        bounty = Bounty(id="7", title="T", poster_id="v")
        request = BountyRequestWithDetails(id="1", bounty_id="7", hunter_id="v", bounty=bounty)
        board = RequestBoard(viewer_id="v", bounty_requests=[request], my_bounties=[bounty])

        acceptance_service._apply_local_patch(board, request, "7", "v")
        once = board.model_dump()
        acceptance_service._apply_local_patch(board, request, "7", "v")

        assert board.model_dump() == once
        assert len(board.in_progress_bounties) == 1
        assert board.bounty_requests == []

    def test_unknown_bounty_id_removes_only_the_request(self, acceptance_service):
        r1 = BountyRequestWithDetails(id="1", hunter_id="h")
        r2 = BountyRequestWithDetails(id="2", hunter_id="h")
        board = RequestBoard(viewer_id="v", bounty_requests=[r1, r2])

        acceptance_service._apply_local_patch(board, r1, None, "h")

        assert [r.id for r in board.bounty_requests] == ["2"]


class TestIdNormalisation:
    def test_numeric_ids_match_string_ids(self, backend, board_factory, acceptance_service):
        backend.add_bounty(id=42, title="Numbers", amount=10, poster_id="poster-1")
        backend.add_request(id=5, bounty_id=42.0, hunter_id=9)
        backend.add_request(id=6, bounty_id="42", hunter_id=10)
        board = board_factory()
        assert board.find_my_bounty(42) is not None

        outcome = acceptance_service.accept_request(board, 5, balance=10)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert outcome.request_id == "5"
        assert outcome.bounty_id == "42"
        assert "6" not in backend.requests
        assert backend.bounties["42"].accepted_by == "9"

    def test_unknown_request_sets_error(self, marketplace, board_factory, acceptance_service):
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "nope", balance=100)

        assert outcome.status == AcceptanceStatus.FAILED
        assert outcome.error_code == AcceptanceErrorCode.REQUEST_NOT_FOUND
        assert board.error == "Request not found"
        assert len(board.bounty_requests) == 2


class TestSecondaryFailures:
    def test_conversation_falls_back_to_local(self, marketplace, board_factory, acceptance_service, local_messages, error_reporter):
        marketplace.failures["create_conversation"] = BackendError(BackendErrorCode.PERMISSION_DENIED, "rls")
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert outcome.conversation_is_local is True
        assert "create_conversation" in outcome.degraded_steps
        conversation = local_messages.get_conversation(outcome.conversation_id)
        assert conversation.is_local
        assert conversation.bounty_id == "b-1"
        assert [m.text for m in local_messages.list_messages(conversation.id)] == [
            "Welcome! You've been selected for: \"Fix the fence\". Let's coordinate the details."
        ]
        assert error_reporter.events_for("create_conversation")

    def test_both_conversation_paths_failing_still_succeeds(self, marketplace, board_factory, backend, loader, notifier, error_reporter):
        marketplace.failures["create_conversation"] = BackendError(BackendErrorCode.UNAVAILABLE)
        broken_local = MagicMock()
        broken_local.get_or_create_conversation.side_effect = RuntimeError("disk full")
        service = RequestAcceptanceService(backend, loader, broken_local, notifier=notifier, error_reporter=error_reporter)
        board = board_factory()

        outcome = service.accept_request(board, "r-1", balance=100)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert outcome.conversation_id is None
        assert set(outcome.degraded_steps) >= {"create_conversation", "create_local_conversation"}
        notifier.dispatch.assert_called_once()

    def test_welcome_message_failure_is_reported(self, marketplace, board_factory, acceptance_service, error_reporter):
        marketplace.failures["send_message"] = BackendError(BackendErrorCode.NOT_FOUND)
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert outcome.conversation_id == "conv-1"
        assert outcome.degraded_steps == ["send_welcome_message"]
        assert error_reporter.last().step == "send_welcome_message"

    def test_competitor_cleanup_failure_is_reported(self, marketplace, board_factory, acceptance_service):
        marketplace.failures["delete_request"] = BackendError(BackendErrorCode.PERMISSION_DENIED)
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert "delete_competing_request" in outcome.degraded_steps
        assert "r-2" in marketplace.requests

    def test_notification_failure_does_not_fail_acceptance(self, marketplace, board_factory, acceptance_service, notifier):
        notifier.dispatch.side_effect = ConnectionError("redis down")
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100)

        assert outcome.status == AcceptanceStatus.SUCCEEDED
        assert outcome.degraded_steps == ["notify_hunter"]


class TestRemoteRejection:
    def test_refusal_reloads_board(self, marketplace, board_factory, acceptance_service, notifier):
        marketplace.refuse_accept = True
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100)

        assert outcome.status == AcceptanceStatus.FAILED
        assert outcome.error_code == AcceptanceErrorCode.REMOTE_REJECTED
        assert outcome.dialog.title == "Accept Failed"
        # The optimistic patch is replaced by what the backend holds
        assert {r.id for r in board.bounty_requests} == {"r-1", "r-2"}
        assert board.find_my_bounty("b-1").status == BountyStatus.OPEN
        assert "create_conversation" not in marketplace.calls
        notifier.dispatch.assert_not_called()

    def test_exception_counts_as_refusal(self, marketplace, board_factory, acceptance_service, error_reporter):
        marketplace.failures["accept_request"] = BackendError(BackendErrorCode.UNAVAILABLE, "timeout")
        board = board_factory()

        outcome = acceptance_service.accept_request(board, "r-1", balance=100)

        assert outcome.error_code == AcceptanceErrorCode.REMOTE_REJECTED
        assert error_reporter.events_for("accept_request")[0].error_type == "BackendError"
        assert len(board.bounty_requests) == 2

    def test_second_acceptance_for_same_bounty_is_refused(self, marketplace, board_factory, acceptance_service):
        marketplace.add_request(id="r-3", bounty_id="b-1", hunter_id="hunter-2")
        marketplace.failures["delete_request"] = RuntimeError("cleanup disabled")
        board = board_factory()
        stale_board = board.model_copy(deep=True)

        assert acceptance_service.accept_request(board, "r-1", balance=100).status == AcceptanceStatus.SUCCEEDED
        outcome = acceptance_service.accept_request(stale_board, "r-3", balance=100)

        assert outcome.error_code == AcceptanceErrorCode.REMOTE_REJECTED
        assert marketplace.bounties["b-1"].accepted_by == "hunter-1"


class TestRejectRequest:
    def test_reject_deletes_request(self, marketplace, board_factory, acceptance_service):
        board = board_factory()

        assert acceptance_service.reject_request(board, "r-2") is True

        assert [r.id for r in board.bounty_requests] == ["r-1"]
        assert "r-2" not in marketplace.requests

    def test_reject_failure_reloads_requests(self, marketplace, board_factory, acceptance_service):
        marketplace.failures["delete_request"] = BackendError(BackendErrorCode.PERMISSION_DENIED)
        board = board_factory()

        assert acceptance_service.reject_request(board, "r-2") is False

        assert {r.id for r in board.bounty_requests} == {"r-1", "r-2"}
        assert board.error == "Failed to reject request"
        assert not board.loading.requests

    def test_reject_unknown_request(self, marketplace, board_factory, acceptance_service):
        with pytest.raises(BountyRequestNotFoundError):
            acceptance_service.reject_request(board_factory(), "missing")


class TestAcceptanceStateMachine:
    def test_happy_path(self):
        attempt = AcceptanceAttempt("r-1")
        machine = AcceptanceStateMachine(attempt)
        for trigger in ("check_balance", "apply_optimistic", "call_remote", "sync_status", "clean_competitors",
                        "create_conversation", "reload", "notify", "succeed"):
            getattr(attempt, trigger)()
        assert machine.state == AcceptanceState.SUCCEEDED
        assert machine.is_terminal()

    def test_rejected_attempt_cannot_notify(self):
        attempt = AcceptanceAttempt("r-1")
        AcceptanceStateMachine(attempt)
        for trigger in ("check_balance", "apply_optimistic", "call_remote", "reject_remote", "reload"):
            getattr(attempt, trigger)()
        assert attempt.notify() is False
        attempt.fail()
        assert attempt.state == AcceptanceState.FAILED.value

    def test_out_of_order_trigger_raises(self):
        attempt = AcceptanceAttempt("r-1")
        AcceptanceStateMachine(attempt)
        with pytest.raises(MachineError):
            attempt.call_remote()
