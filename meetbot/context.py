"""
Session state shared by every lifecycle phase.

``SessionContext`` is created once by the controller and mutated in place by
whichever state handler is running. Background callbacks (speaker updates,
recorder events) only assign fields here; the Recording tick reads them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from meetbot.providers.base import MeetingProvider


class MeetingPhase(str, Enum):
    """Lifecycle phases of a bot session."""

    INITIALIZATION = "initialization"
    WAITING_ROOM = "waitingRoom"
    IN_CALL = "inCall"
    RECORDING = "recording"
    PAUSED = "paused"
    RESUMING = "resuming"
    ERROR = "error"
    CLEANUP = "cleanup"
    TERMINATED = "terminated"


@dataclass
class ParticipantState:
    """Participant signals pushed into a Recording session."""

    attendees_count: int = 0
    first_user_joined: bool = False
    last_speaker_time: Optional[float] = None
    no_speaker_detected_time: Optional[float] = None


@dataclass
class RecordingSnapshot:
    """Recording signals saved across a pause/resume cycle."""

    attendees_count: int = 0
    last_speaker_time: Optional[float] = None
    no_speaker_detected_time: Optional[float] = None
    first_user_joined: bool = False


@dataclass
class SessionContext:
    """Mutable record of session-wide state and collaborator handles."""

    provider: MeetingProvider

    # Collaborator handles (None until started, None again once stopped)
    browser_context: Any = None
    page: Any = None
    streaming: Any = None
    speakers_observer: Any = None
    html_cleaner: Any = None
    dialog_observer: Any = None
    video_fixing_observer: Any = None
    branding: Any = None
    recorder: Any = None
    speaker_manager: Any = None
    browser: Any = None

    # Timing (seconds since epoch / seconds)
    start_time: Optional[float] = None
    pause_start_time: Optional[float] = None
    total_pause_duration: float = 0.0
    is_paused: bool = False
    resume_requested: bool = False

    # Participant signals
    attendees_count: int = 0
    first_user_joined: bool = False
    last_speaker_time: Optional[float] = None
    no_speaker_detected_time: Optional[float] = None
    no_attendees_since: Optional[float] = None

    last_recording_state: Optional[RecordingSnapshot] = None
    error: Optional[BaseException] = None

    def take_snapshot(self) -> RecordingSnapshot:
        """Capture the current participant signals."""
        snapshot = RecordingSnapshot(
            attendees_count=self.attendees_count,
            last_speaker_time=self.last_speaker_time,
            no_speaker_detected_time=self.no_speaker_detected_time,
            first_user_joined=self.first_user_joined,
        )
        self.last_recording_state = snapshot
        return snapshot

    def restore_snapshot(self) -> None:
        """Restore participant signals saved by ``take_snapshot``."""
        snapshot = self.last_recording_state
        if snapshot is None:
            return
        self.attendees_count = snapshot.attendees_count
        self.last_speaker_time = snapshot.last_speaker_time
        self.no_speaker_detected_time = snapshot.no_speaker_detected_time
        self.first_user_joined = snapshot.first_user_joined

    def reset_silence_latches(self) -> None:
        self.no_attendees_since = None
        self.no_speaker_detected_time = None


@dataclass
class StateResult:
    """What a state handler returns: the next phase and the context."""

    next_phase: MeetingPhase
    context: SessionContext
