"""
================================================================================
PLAYBACK CONTROLLER
================================================================================
Timer-driven state machine over an assembled FrameRecord sequence.

States:
    Idle              no records
    Paused{index}     showing one record
    Playing{index}    advancing one record per timer tick

Transitions are pure functions (state, event) -> state. The controller owns
the single PlaybackState instance and the periodic timer, and is the only
writer of current_index / is_playing.

    load(records)   any -> Paused{0}, or Idle when records is empty
    play()          Paused{i} -> Playing{i}
    pause()         Playing{i} -> Paused{i}
    tick            Playing{i} -> Playing{i+1}; Playing{last} -> Paused{0}
    seek(j)         Paused/Playing -> Paused{j}
================================================================================
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from posereplay.assembler import FrameRecord
from posereplay.logger import get_logger
from posereplay.timer import PeriodicTimer

logger = get_logger(__name__)

DEFAULT_TICK_INTERVAL = 0.1  # seconds, 10 visual fps

StateListener = Callable[["PlaybackState"], None]
TimerFactory = Callable[[float, Callable[[], None]], PeriodicTimer]


class PlaybackPhase(str, Enum):
    IDLE = "idle"
    PAUSED = "paused"
    PLAYING = "playing"


@dataclass(frozen=True)
class PlaybackState:
    records: Tuple[FrameRecord, ...] = ()
    current_index: Optional[int] = None
    is_playing: bool = False

    @property
    def phase(self) -> PlaybackPhase:
        if not self.records:
            return PlaybackPhase.IDLE
        return PlaybackPhase.PLAYING if self.is_playing else PlaybackPhase.PAUSED

    @property
    def current_record(self) -> Optional[FrameRecord]:
        if self.current_index is None:
            return None
        return self.records[self.current_index]

    def __len__(self) -> int:
        return len(self.records)


IDLE = PlaybackState()


# ==============================================================================
# TRANSITIONS
# ==============================================================================

def load_records(state: PlaybackState, records: Sequence[FrameRecord]) -> PlaybackState:
    """Replace the sequence wholesale; the previous state is discarded."""
    records = tuple(records)
    if not records:
        return IDLE
    return PlaybackState(records=records, current_index=0, is_playing=False)


def play(state: PlaybackState) -> PlaybackState:
    if state.phase is not PlaybackPhase.PAUSED:
        return state
    return replace(state, is_playing=True)


def pause(state: PlaybackState) -> PlaybackState:
    if state.phase is not PlaybackPhase.PLAYING:
        return state
    return replace(state, is_playing=False)


def seek(state: PlaybackState, index: int) -> PlaybackState:
    """Jump to `index`, always ending paused."""
    if not 0 <= index < len(state.records):
        raise IndexError(f"Frame index {index} out of range for {len(state.records)} records")
    return replace(state, current_index=index, is_playing=False)


def tick(state: PlaybackState) -> PlaybackState:
    """Advance one record; past the end, stop and rewind to the first."""
    if state.phase is not PlaybackPhase.PLAYING:
        return state
    next_index = state.current_index + 1
    if next_index >= len(state.records):
        return replace(state, current_index=0, is_playing=False)
    return replace(state, current_index=next_index)


# ==============================================================================
# CONTROLLER
# ==============================================================================

class PlaybackController:
    """
    Owns the playback state and the tick timer.

    Example:
        >>> controller = PlaybackController()
        >>> controller.load(records)
        >>> controller.play()       # ticks every 100ms from the running loop
        >>> controller.seek(12)     # stops playback, shows record 12
        >>> controller.close()
    """

    def __init__(
        self,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        timer_factory: TimerFactory = PeriodicTimer,
    ):
        self.tick_interval = tick_interval
        self._timer_factory = timer_factory
        self._state = IDLE
        self._timer: Optional[PeriodicTimer] = None
        self._generation = 0
        self._closed = False
        self._listeners: List[StateListener] = []

    # --------------------------------------------------------------------------
    # Read side
    # --------------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback for every state change; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --------------------------------------------------------------------------
    # Events
    # --------------------------------------------------------------------------

    def load(self, records: Sequence[FrameRecord]) -> PlaybackState:
        self._check_open()
        self._stop_timer()
        return self._apply(load_records(self._state, records))

    def play(self) -> PlaybackState:
        self._check_open()
        new_state = play(self._state)
        if new_state is self._state:
            return self._state
        self._start_timer()
        return self._apply(new_state)

    def pause(self) -> PlaybackState:
        self._check_open()
        new_state = pause(self._state)
        if new_state is self._state:
            return self._state
        self._stop_timer()
        return self._apply(new_state)

    def toggle(self) -> PlaybackState:
        if self._state.is_playing:
            return self.pause()
        return self.play()

    def seek(self, index: int) -> PlaybackState:
        self._check_open()
        new_state = seek(self._state, index)
        self._stop_timer()
        return self._apply(new_state)

    def tick(self) -> PlaybackState:
        """Advance one step, as the timer does."""
        self._check_open()
        new_state = tick(self._state)
        if new_state is self._state:
            return self._state
        if not new_state.is_playing:
            self._stop_timer()
        return self._apply(new_state)

    def close(self) -> None:
        """Release the timer. Idempotent; no state changes afterwards."""
        self._stop_timer()
        self._closed = True
        self._listeners.clear()

    # --------------------------------------------------------------------------
    # Internals
    # --------------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Playback controller is closed")

    def _apply(self, new_state: PlaybackState) -> PlaybackState:
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    def _start_timer(self) -> None:
        self._stop_timer()
        self._generation += 1
        generation = self._generation
        timer = self._timer_factory(self.tick_interval, lambda: self._on_timer(generation))
        timer.start()
        self._timer = timer

    def _stop_timer(self) -> None:
        self._generation += 1
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _on_timer(self, generation: int) -> None:
        if self._closed or generation != self._generation:
            return
        self.tick()
