"""
Request Acceptance Service

Coordinates a poster accepting a hunter's request on their board. The board
is patched optimistically before the backend is asked to accept; the
backend is the source of truth and every exit path that reached the backend
ends with a reload of the board. Local changes are never rolled back by
hand.

Secondary steps (status sync, competitor cleanup, conversation, welcome
message, notification) are best effort: failures are logged, reported to the
ErrorReporter and recorded on the outcome, and the workflow carries on.
"""
from typing import Callable, List, Optional

from bountyexpo.backend.modules.bounty.enums.acceptance_status_enum import AcceptanceErrorCode, AcceptanceStatus
from bountyexpo.backend.modules.bounty.machines.acceptance_state_machine import AcceptanceAttempt, AcceptanceStateMachine
from bountyexpo.backend.modules.bounty.models.acceptance_outcome import AcceptanceOutcome, UserDialog
from bountyexpo.backend.modules.bounty.models.request_board import RequestBoard
from bountyexpo.backend.modules.bounty.services.board_loader import BoardLoader
from bountyexpo.backend.modules.messaging.local_message_service import LocalMessageService
from bountyexpo.backend.modules.notification.notification_dispatcher import AcceptanceNotification, NotificationDispatcher
from bountyexpo.shared.modules.bounty.bounty_backend import BountyBackend
from bountyexpo.shared.modules.bounty.enums.bounty_status_enum import BountyStatus
from bountyexpo.shared.modules.bounty.ids import normalize_id, same_id
from bountyexpo.shared.modules.bounty.models.bounty import Bounty
from bountyexpo.shared.modules.bounty.models.bounty_request import BountyRequestWithDetails
from bountyexpo.shared.modules.cache.cache_keys import CacheKeys
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode, BountyRequestNotFoundError
from bountyexpo.shared.modules.log.error_reporter import ErrorReporter
from bountyexpo.shared.modules.log.logger import get_logger

REQUEST_NOT_FOUND = "Request not found"
ACCEPT_FAILED_MESSAGE = "Failed to accept the request on the server. The UI may be out of sync; please refresh."


class RequestAcceptanceService:
    def __init__(
        self,
        backend: BountyBackend,
        loader: BoardLoader,
        local_messages: LocalMessageService,
        notifier: Optional[NotificationDispatcher] = None,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        self.backend = backend
        self.loader = loader
        self.local_messages = local_messages
        self.notifier = notifier
        self.error_reporter = error_reporter or ErrorReporter()
        self.logger = get_logger(self.__class__.__name__)

    def accept_request(
        self,
        board: RequestBoard,
        request_id,
        balance: float,
        on_bounty_accepted: Optional[Callable[[str], None]] = None,
    ) -> AcceptanceOutcome:
        attempt = AcceptanceAttempt(request_id=normalize_id(request_id))
        AcceptanceStateMachine(attempt)
        board.loading.set_all(True)
        try:
            return self._accept(board, attempt, balance, on_bounty_accepted)
        except Exception as e:
            self.logger.error(f"Error accepting request {attempt.request_id}: {e}")
            board.error = str(e) or "Failed to accept request"
            attempt.fail()
            return self._outcome(attempt, AcceptanceStatus.FAILED, error=board.error,
                                 error_code=AcceptanceErrorCode.UNEXPECTED)
        finally:
            board.loading.set_all(False)

    def _accept(self, board: RequestBoard, attempt: AcceptanceAttempt, balance: float, on_bounty_accepted) -> AcceptanceOutcome:
        request = board.find_request(attempt.request_id)
        if request is None:
            self.logger.warning(f"Request {attempt.request_id} is not on the board of {board.viewer_id}")
            board.error = REQUEST_NOT_FOUND
            attempt.fail()
            return self._outcome(attempt, AcceptanceStatus.FAILED, error=REQUEST_NOT_FOUND,
                                 error_code=AcceptanceErrorCode.REQUEST_NOT_FOUND)

        bounty_id = request.resolved_bounty_id()
        bounty = request.bounty or board.find_my_bounty(bounty_id)
        hunter_id = request.hunter_id
        attempt.bounty_id = bounty_id

        # Nothing is touched before the balance check
        if bounty is not None and bounty.is_paid() and balance < bounty.amount:
            self.logger.info(f"Balance {balance:.2f} below {bounty.amount:.2f} for bounty {bounty_id}")
            board.show_add_money = True
            attempt.abort()
            return self._outcome(
                attempt,
                AcceptanceStatus.ABORTED,
                dialog=UserDialog(
                    title="Insufficient Balance",
                    message=(
                        f"You need ${bounty.amount:.2f} to accept this request. "
                        f"Your current balance is ${balance:.2f}.\n\n"
                        "Would you like to add money to your wallet?"
                    ),
                    actions=["Cancel", "Add Money"],
                ),
                error_code=AcceptanceErrorCode.INSUFFICIENT_BALANCE,
            )
        attempt.check_balance()

        snapshot = list(board.bounty_requests)
        self._apply_local_patch(board, request, bounty_id, hunter_id)
        attempt.apply_optimistic()

        attempt.call_remote()
        if not self._remote_accept(request):
            attempt.reject_remote()
            self.loader.reload(board)
            attempt.reload()
            attempt.fail()
            return self._outcome(
                attempt,
                AcceptanceStatus.FAILED,
                dialog=UserDialog(title="Accept Failed", message=ACCEPT_FAILED_MESSAGE),
                error="Failed to accept request",
                error_code=AcceptanceErrorCode.REMOTE_REJECTED,
            )

        attempt.sync_status()
        bounty = self._sync_bounty_status(attempt, bounty, bounty_id, hunter_id)

        self._delete_competitors(attempt, snapshot, request, bounty_id)
        attempt.clean_competitors()

        self._open_conversation(attempt, board.viewer_id, request, bounty, bounty_id)
        attempt.create_conversation()

        self._apply_local_patch(board, request, bounty_id, hunter_id)
        self.loader.reload(board)
        attempt.reload()

        if on_bounty_accepted is not None:
            try:
                on_bounty_accepted(bounty_id)
            except Exception as e:
                self.logger.error(f"on_bounty_accepted callback failed for bounty {bounty_id}: {e}")

        self._notify_hunter(attempt, hunter_id, board.viewer_id, bounty_id, bounty)
        attempt.notify()
        attempt.succeed()

        self.logger.info(f"Accepted request {attempt.request_id} for bounty {bounty_id}")
        return self._outcome(
            attempt,
            AcceptanceStatus.SUCCEEDED,
            dialog=self._accepted_dialog(request, bounty),
        )

    def _apply_local_patch(self, board: RequestBoard, request: BountyRequestWithDetails, bounty_id, hunter_id):
        """
        Optimistic view of an accepted request. Applying it twice leaves the
        board as applying it once.
        """
        if bounty_id is None:
            board.bounty_requests = [r for r in board.bounty_requests if not same_id(r.id, request.id)]
            return

        board.bounty_requests = [
            r for r in board.bounty_requests if not same_id(r.resolved_bounty_id(), bounty_id)
        ]
        board.my_bounties = [
            b.with_status(BountyStatus.IN_PROGRESS, accepted_by=hunter_id) if same_id(b.id, bounty_id) else b
            for b in board.my_bounties
        ]
        if same_id(hunter_id, board.viewer_id) and not any(same_id(b.id, bounty_id) for b in board.in_progress_bounties):
            placeholder = request.bounty or Bounty(id=bounty_id)
            board.in_progress_bounties = [
                placeholder.with_status(BountyStatus.IN_PROGRESS, accepted_by=hunter_id)
            ] + board.in_progress_bounties

    def _remote_accept(self, request: BountyRequestWithDetails) -> bool:
        # An exception from the backend is treated like a refusal
        try:
            accepted = self.backend.accept_request(request.id)
        except Exception as e:
            self._report("accept_request", e, request_id=request.id)
            return False
        if not accepted:
            self.logger.warning(f"Backend refused to accept request {request.id}")
            return False
        return True

    def _sync_bounty_status(self, attempt: AcceptanceAttempt, bounty: Optional[Bounty], bounty_id, hunter_id) -> Optional[Bounty]:
        if bounty_id is None:
            return bounty

        if bounty is None:
            try:
                bounty = self.backend.get_bounty(bounty_id)
            except Exception as e:
                self._report("fetch_bounty", e, attempt, bounty_id=bounty_id)

        try:
            updated = self.backend.update_bounty_status(bounty_id, BountyStatus.IN_PROGRESS, accepted_by=hunter_id)
            if updated is None:
                raise BackendError(BackendErrorCode.CONFLICT, f"Failed to update bounty {bounty_id}")
            return updated
        except Exception as e:
            self._report("update_bounty_status", e, attempt, bounty_id=bounty_id)
            return bounty

    def _delete_competitors(self, attempt: AcceptanceAttempt, snapshot: List[BountyRequestWithDetails], request, bounty_id):
        if bounty_id is None:
            return
        competitors = [
            r for r in snapshot
            if same_id(r.resolved_bounty_id(), bounty_id) and not same_id(r.id, request.id)
        ]
        for competitor in competitors:
            try:
                self.backend.delete_request(competitor.id)
                self.logger.info(f"Deleted competing request {competitor.id} for bounty {bounty_id}")
            except Exception as e:
                self._report("delete_competing_request", e, attempt, request_id=competitor.id, bounty_id=bounty_id)

    def _open_conversation(self, attempt: AcceptanceAttempt, viewer_id, request: BountyRequestWithDetails, bounty: Optional[Bounty], bounty_id):
        participants = [viewer_id, request.hunter_id]
        title = bounty.title if bounty and bounty.title else ""
        name = request.hunter_username() or title or "Conversation"
        welcome = f"Welcome! You've been selected for: \"{title}\". Let's coordinate the details."

        try:
            conversation_id = normalize_id(self.backend.create_conversation(participants, bounty_id, name))
            if conversation_id is None:
                raise BackendError(BackendErrorCode.CONFLICT, "Conversation was not created")
        except Exception as e:
            self._report("create_conversation", e, attempt, bounty_id=bounty_id)
            self._open_local_conversation(attempt, participants, name, bounty_id, welcome, viewer_id)
            return

        attempt.conversation_id = conversation_id
        try:
            self.backend.send_message(conversation_id, welcome, viewer_id)
        except Exception as e:
            self._report("send_welcome_message", e, attempt, conversation_id=conversation_id)

    def _open_local_conversation(self, attempt: AcceptanceAttempt, participants, name, bounty_id, welcome, viewer_id):
        try:
            conversation = self.local_messages.get_or_create_conversation(participants, name, bounty_id)
        except Exception as e:
            self._report("create_local_conversation", e, attempt, bounty_id=bounty_id)
            return

        self.logger.warning(f"Using local conversation {conversation.id} for bounty {bounty_id}")
        attempt.conversation_id = conversation.id
        attempt.conversation_is_local = True
        try:
            self.local_messages.send_message(conversation.id, welcome, viewer_id)
        except Exception as e:
            self._report("send_local_welcome_message", e, attempt, conversation_id=conversation.id)

    def _notify_hunter(self, attempt: AcceptanceAttempt, hunter_id, poster_id, bounty_id, bounty: Optional[Bounty]):
        if self.notifier is None or hunter_id is None:
            self.logger.warning(f"Skipping acceptance notification for bounty {bounty_id}")
            return
        try:
            self.notifier.dispatch(AcceptanceNotification.for_bounty(hunter_id, poster_id, bounty_id, bounty))
        except Exception as e:
            self._report("notify_hunter", e, attempt, hunter_id=hunter_id, bounty_id=bounty_id)

    @staticmethod
    def _accepted_dialog(request: BountyRequestWithDetails, bounty: Optional[Bounty]) -> UserDialog:
        hunter = request.hunter_username() or "the hunter"
        title = bounty.title if bounty else ""
        message = f"You've accepted {hunter} for \"{title}\".\n\n"
        if bounty is not None and bounty.is_paid():
            message += f"Escrow: ${bounty.amount:.2f} has been secured and will be held until completion.\n"
        message += "A conversation has been created to coordinate."
        return UserDialog(title="Request Accepted", message=message, actions=["View Conversation", "OK"])

    def _report(self, step: str, error: Exception, attempt: Optional[AcceptanceAttempt] = None, **context):
        self.error_reporter.report(step, error, **context)
        if attempt is not None:
            attempt.degrade(step)

    @staticmethod
    def _outcome(attempt: AcceptanceAttempt, status: AcceptanceStatus, **fields) -> AcceptanceOutcome:
        return AcceptanceOutcome(
            status=status,
            request_id=attempt.request_id,
            bounty_id=attempt.bounty_id,
            conversation_id=attempt.conversation_id,
            conversation_is_local=attempt.conversation_is_local,
            degraded_steps=list(attempt.degraded_steps),
            **fields,
        )

    def reject_request(self, board: RequestBoard, request_id) -> bool:
        """
        Remove a request from the board and delete it on the backend.
        On failure the board's requests are reloaded from the backend.
        """
        request = board.find_request(request_id)
        if request is None:
            raise BountyRequestNotFoundError(request_id)

        board.bounty_requests = [r for r in board.bounty_requests if not same_id(r.id, request.id)]
        board.loading.requests = True
        try:
            if not self.backend.delete_request(request.id):
                raise BackendError(BackendErrorCode.NOT_FOUND, f"Request {request.id} was not deleted")
        except Exception as e:
            self._report("reject_request", e, request_id=request.id)
            board.error = "Failed to reject request"
            try:
                self.loader.load_requests_for_bounties(board, board.my_bounties)
            except Exception as reload_error:
                self.logger.error(f"Failed to reload requests for {board.viewer_id}: {reload_error}")
            return False
        finally:
            board.loading.requests = False

        bounty_id = request.resolved_bounty_id()
        if bounty_id is not None:
            self.loader.cache.invalidate(CacheKeys.bounty_requests(bounty_id))
        self.logger.info(f"Rejected request {request.id}")
        return True
