"""
Automation Status Models and Enums
@file purpose: Status enums for sessions, applications and submitted links,
plus the per-job application state machine
"""

import logging
from enum import Enum
from typing import Dict, List, Set

from exceptions import InvalidStateTransitionException

logger = logging.getLogger(__name__)


class AutomationStatus(str, Enum):
    """Lifecycle of one automation session"""

    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"

    def __str__(self) -> str:
        return self.value


class ApplicationStatus(str, Enum):
    """Outcome of a single application"""

    PENDING = "pending"
    SUBMITTED = "submitted"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        """Return the string value of the enum"""
        return self.value

    @classmethod
    def get_all_statuses(cls):
        """Get all available status values as a list"""
        return [status.value for status in cls]

    @classmethod
    def is_valid_status(cls, status: str) -> bool:
        """Check if a given status string is valid"""
        return status in cls.get_all_statuses()


class SubmissionStatus(str, Enum):
    """Status recorded against a link in submittedLinks"""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    SKIP = "SKIP"
    TIMEOUT = "TIMEOUT"
    PROCESSING = "PROCESSING"

    def __str__(self) -> str:
        return self.value


class ApplicationPhase(str, Enum):
    """States of the per-job application state machine"""

    IDLE = "idle"
    SEARCHING = "searching"
    JOB_SELECTED = "job_selected"
    FORM_DETECTED = "form_detected"
    FILLING = "filling"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


TERMINAL_PHASES: Set[ApplicationPhase] = {
    ApplicationPhase.SUCCESS,
    ApplicationPhase.ERROR,
    ApplicationPhase.SKIPPED,
}

# Forward edges; ERROR, SKIPPED and IDLE are reachable from anywhere
_FORWARD_EDGES: Dict[ApplicationPhase, Set[ApplicationPhase]] = {
    ApplicationPhase.IDLE: {ApplicationPhase.SEARCHING, ApplicationPhase.JOB_SELECTED},
    ApplicationPhase.SEARCHING: {ApplicationPhase.JOB_SELECTED},
    ApplicationPhase.JOB_SELECTED: {
        ApplicationPhase.FORM_DETECTED,
        ApplicationPhase.SEARCHING,
    },
    ApplicationPhase.FORM_DETECTED: {ApplicationPhase.FILLING},
    ApplicationPhase.FILLING: {ApplicationPhase.SUBMITTING, ApplicationPhase.FILLING},
    ApplicationPhase.SUBMITTING: {
        ApplicationPhase.SUCCESS,
        ApplicationPhase.FILLING,
    },
    ApplicationPhase.SUCCESS: set(),
    ApplicationPhase.ERROR: set(),
    ApplicationPhase.SKIPPED: set(),
}

_ALWAYS_ALLOWED = {ApplicationPhase.ERROR, ApplicationPhase.SKIPPED, ApplicationPhase.IDLE}


class ApplicationStateMachine:
    """
    Tracks the phase of the job currently being worked on

    idle -> searching -> job_selected -> form_detected -> filling ->
    submitting -> {success | error | skipped} -> idle

    FILLING and SUBMITTING may loop back to FILLING for multi-step forms.
    """

    def __init__(self):
        self.phase = ApplicationPhase.IDLE
        self.history: List[ApplicationPhase] = [ApplicationPhase.IDLE]

    def can_transition(self, to_phase: ApplicationPhase) -> bool:
        to_phase = ApplicationPhase(to_phase)
        if to_phase in _ALWAYS_ALLOWED:
            return True
        return to_phase in _FORWARD_EDGES[self.phase]

    def transition(self, to_phase: ApplicationPhase) -> ApplicationPhase:
        """Move to ``to_phase`` or raise InvalidStateTransitionException"""
        to_phase = ApplicationPhase(to_phase)
        if not self.can_transition(to_phase):
            raise InvalidStateTransitionException(
                f"Cannot move application from {self.phase} to {to_phase}",
                from_state=self.phase.value,
                to_state=to_phase.value,
            )
        logger.debug(f"Application phase {self.phase} -> {to_phase}")
        self.phase = to_phase
        self.history.append(to_phase)
        return self.phase

    def reset(self):
        self.transition(ApplicationPhase.IDLE)

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def is_active(self) -> bool:
        return self.phase not in TERMINAL_PHASES and self.phase != ApplicationPhase.IDLE
