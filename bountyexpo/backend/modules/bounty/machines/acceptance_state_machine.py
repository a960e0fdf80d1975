"""
State machine for one attempt at accepting a bounty request.

    idle -> balance_checked -> optimistic_applied -> remote_accept_called
         remote success: -> status_synced -> competitors_cleaned
                         -> conversation_created -> reloaded
                         -> participant_notified -> succeeded
         remote failure: -> remote_rejected -> reloaded -> failed
    idle -> aborted  (insufficient balance, nothing touched)
    any  -> failed
"""
from enum import Enum
from typing import List, Optional

from transitions import Machine


class AcceptanceState(str, Enum):
    IDLE = "idle"
    BALANCE_CHECKED = "balance_checked"
    OPTIMISTIC_APPLIED = "optimistic_applied"
    REMOTE_ACCEPT_CALLED = "remote_accept_called"
    STATUS_SYNCED = "status_synced"
    COMPETITORS_CLEANED = "competitors_cleaned"
    CONVERSATION_CREATED = "conversation_created"
    RELOADED = "reloaded"
    PARTICIPANT_NOTIFIED = "participant_notified"
    SUCCEEDED = "succeeded"
    REMOTE_REJECTED = "remote_rejected"
    ABORTED = "aborted"
    FAILED = "failed"


class AcceptanceAttempt:
    """
    Model driven by the machine. Besides the state it records how the
    best-effort steps went.
    """

    def __init__(self, request_id: str, bounty_id: Optional[str] = None):
        self.request_id = request_id
        self.bounty_id = bounty_id
        self.conversation_id: Optional[str] = None
        self.conversation_is_local = False
        self.degraded_steps: List[str] = []
        self.remote_accepted = False

    def degrade(self, step: str):
        if step not in self.degraded_steps:
            self.degraded_steps.append(step)

    def mark_remote_accepted(self):
        self.remote_accepted = True

    def was_accepted(self) -> bool:
        return self.remote_accepted


class AcceptanceStateMachine:
    """
    Wraps an AcceptanceAttempt with the transitions of the acceptance flow.
    Out-of-order triggers raise transitions.MachineError.
    """

    def __init__(self, attempt: AcceptanceAttempt):
        self.attempt = attempt
        s = AcceptanceState
        self.machine = Machine(model=self.attempt, states=[st.value for st in s], initial=s.IDLE.value, auto_transitions=False)
        self.machine.add_transition("check_balance", s.IDLE.value, s.BALANCE_CHECKED.value)
        self.machine.add_transition("abort", s.IDLE.value, s.ABORTED.value)
        self.machine.add_transition("apply_optimistic", s.BALANCE_CHECKED.value, s.OPTIMISTIC_APPLIED.value)
        self.machine.add_transition("call_remote", s.OPTIMISTIC_APPLIED.value, s.REMOTE_ACCEPT_CALLED.value)
        self.machine.add_transition("sync_status", s.REMOTE_ACCEPT_CALLED.value, s.STATUS_SYNCED.value,
                                    before="mark_remote_accepted")
        self.machine.add_transition("reject_remote", s.REMOTE_ACCEPT_CALLED.value, s.REMOTE_REJECTED.value)
        self.machine.add_transition("clean_competitors", s.STATUS_SYNCED.value, s.COMPETITORS_CLEANED.value)
        self.machine.add_transition("create_conversation", s.COMPETITORS_CLEANED.value, s.CONVERSATION_CREATED.value)
        self.machine.add_transition("reload", [s.CONVERSATION_CREATED.value, s.REMOTE_REJECTED.value], s.RELOADED.value)
        self.machine.add_transition("notify", s.RELOADED.value, s.PARTICIPANT_NOTIFIED.value,
                                    conditions="was_accepted")
        self.machine.add_transition("succeed", s.PARTICIPANT_NOTIFIED.value, s.SUCCEEDED.value)
        self.machine.add_transition("fail", "*", s.FAILED.value)

    @property
    def state(self) -> AcceptanceState:
        return AcceptanceState(self.attempt.state)

    def is_terminal(self) -> bool:
        return self.state in (AcceptanceState.SUCCEEDED, AcceptanceState.ABORTED, AcceptanceState.FAILED)
