"""
Interaction Ledger for the visitor-side player.

Tracks the visitor's own like/dislike per beat, the session-only adjustment
to the displayed counters, and emits reconciliation commands for the
counter store.

Reactions are exclusive and toggle: pressing like while liked removes the
like, pressing like while disliked swaps to like. Every click produces a
ReactionCommand with exactly the marginal change of that click. Dispatch is
fire-and-forget and optimistic: if the server never receives the command,
local state is kept as if it had (a vote can be lost silently).

Session deltas are not persisted. After a restart the visitor relies on a
fresh fetch of the authoritative counts; a reload while a PATCH is still in
flight can drop that vote.
"""

from typing import Callable, Dict, Optional, Tuple
import logging
import threading

from shared.models import (
    ReactionAction,
    ReactionCommand,
    ReactionDelta,
    ReactionState,
    SessionDelta,
)
from .reaction_store import ReactionStore

logger = logging.getLogger(__name__)

Dispatcher = Callable[[ReactionCommand], None]

_TRANSITIONS: Dict[Tuple[ReactionState, ReactionAction], Tuple[ReactionState, ReactionDelta]] = {
    (ReactionState.NONE, ReactionAction.LIKE): (ReactionState.LIKED, ReactionDelta(1, 0)),
    (ReactionState.LIKED, ReactionAction.LIKE): (ReactionState.NONE, ReactionDelta(-1, 0)),
    (ReactionState.DISLIKED, ReactionAction.LIKE): (ReactionState.LIKED, ReactionDelta(1, -1)),
    (ReactionState.NONE, ReactionAction.DISLIKE): (ReactionState.DISLIKED, ReactionDelta(0, 1)),
    (ReactionState.DISLIKED, ReactionAction.DISLIKE): (ReactionState.NONE, ReactionDelta(0, -1)),
    (ReactionState.LIKED, ReactionAction.DISLIKE): (ReactionState.DISLIKED, ReactionDelta(-1, 1)),
}


def apply_reaction(current: ReactionState, action: ReactionAction) -> Tuple[ReactionState, ReactionDelta]:
    """
    Pure transition function of the reaction state machine.

    Defined for every (state, action) pair.

    Returns:
        (new_state, delta) where delta is the marginal counter change
    """
    return _TRANSITIONS[(current, action)]


class InteractionLedger:
    """
    Owns the visitor's reactions and session deltas.

    Construct one per application (or per test) and hand it to the views.
    All mutations go through toggle_like/toggle_dislike and are serialized
    by a single lock.
    """

    def __init__(self, store: Optional[ReactionStore] = None,
                 dispatcher: Optional[Dispatcher] = None):
        self._store = store
        self._dispatcher = dispatcher
        self._lock = threading.Lock()
        self._reactions: Dict[str, ReactionState] = store.load() if store else {}
        self._session: Dict[str, SessionDelta] = {}

    def toggle_like(self, beat_id: str) -> Optional[ReactionCommand]:
        """Toggle the like on a beat. Returns the emitted command, if any."""
        return self._toggle(beat_id, ReactionAction.LIKE)

    def toggle_dislike(self, beat_id: str) -> Optional[ReactionCommand]:
        """Toggle the dislike on a beat. Returns the emitted command, if any."""
        return self._toggle(beat_id, ReactionAction.DISLIKE)

    def get_reaction(self, beat_id: str) -> ReactionState:
        """Current reaction; NONE for beats never interacted with."""
        with self._lock:
            return self._reactions.get(beat_id, ReactionState.NONE)

    def session_delta(self, beat_id: str) -> SessionDelta:
        """Copy of the session adjustment for a beat."""
        with self._lock:
            delta = self._session.get(beat_id)
            return SessionDelta(delta.likes, delta.dislikes) if delta else SessionDelta()

    def display_count(self, beat_id: str, authoritative_like: int,
                      authoritative_dislike: int) -> Tuple[int, int]:
        """
        Counts a view should render for a beat.

        Each value is the authoritative count plus this session's delta,
        clamped at zero.
        """
        delta = self.session_delta(beat_id)
        return (
            max(0, authoritative_like + delta.likes),
            max(0, authoritative_dislike + delta.dislikes),
        )

    def reactions(self) -> Dict[str, ReactionState]:
        """Snapshot of every non-NONE reaction."""
        with self._lock:
            return dict(self._reactions)

    def _toggle(self, beat_id: str, action: ReactionAction) -> Optional[ReactionCommand]:
        with self._lock:
            current = self._reactions.get(beat_id, ReactionState.NONE)
            new_state, delta = apply_reaction(current, action)

            if new_state is ReactionState.NONE:
                self._reactions.pop(beat_id, None)
            else:
                self._reactions[beat_id] = new_state

            session = self._session.setdefault(beat_id, SessionDelta())
            session.likes += delta.like_delta
            session.dislikes += delta.dislike_delta

            if self._store:
                self._store.save(self._reactions)

            logger.debug(f"{action.value} on {beat_id}: {current.name} -> {new_state.name} ({delta})")

        if delta.is_zero():
            return None
        command = ReactionCommand(beat_id=beat_id, delta=delta)
        self._dispatch(command)
        return command

    def _dispatch(self, command: ReactionCommand) -> None:
        if not self._dispatcher:
            return
        try:
            self._dispatcher(command)
        except Exception as e:
            # Optimistic: local state stays as if the command had been delivered
            logger.error(f"Failed to dispatch reaction for {command.beat_id}: {e}")
