"""
Game orchestration for Kvinti.

A Game drives one GameRecord: it validates and applies actions, appends the
resulting states and tracks the terminal status. The record is an explicit
object owned by the caller; nothing here is global.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Optional, Union

from .board import Position, opponent
from .errors import GameOverError, IllegalActionError
from .moves import Action, LegalActions, MoveGenerator, apply_action, find_action
from .state import BoardState

if TYPE_CHECKING:
    from ..ai.search import Difficulty, SearchEngine

logger = logging.getLogger(__name__)

# Number of occurrences of one position that ends the game in a draw
REPETITION_LIMIT = 3


class StatusKind(str, Enum):
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAWN = "drawn"


@dataclass(frozen=True)
class GameStatus:
    """
    Status of a game.

    Attributes:
        kind: In progress, won or drawn
        winner: Winning player for WON, else None
        reason: Why the game ended ('royal_captured', 'elimination',
            'no_moves', 'repetition'), None while in progress
    """
    kind: StatusKind = StatusKind.IN_PROGRESS
    winner: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def won(cls, player: int, reason: str) -> GameStatus:
        return cls(StatusKind.WON, player, reason)

    @classmethod
    def drawn(cls, reason: str) -> GameStatus:
        return cls(StatusKind.DRAWN, None, reason)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not StatusKind.IN_PROGRESS


IN_PROGRESS = GameStatus()


@dataclass(frozen=True)
class RecordEntry:
    """A state in the record and the action that produced it (None for the first)."""
    state: BoardState
    action: Optional[Action] = None


class GameRecord:
    """Append-only sequence of board states, each tagged with its action."""

    def __init__(self, initial: Optional[BoardState] = None):
        self.entries: list[RecordEntry] = [RecordEntry(initial or BoardState.new_game())]

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> RecordEntry:
        return self.entries[index]

    def __iter__(self) -> Iterator[RecordEntry]:
        return iter(self.entries)

    @property
    def current(self) -> BoardState:
        return self.entries[-1].state

    @property
    def initial(self) -> BoardState:
        return self.entries[0].state

    @property
    def actions(self) -> list[Action]:
        return [e.action for e in self.entries[1:]]

    def append(self, state: BoardState, action: Action) -> RecordEntry:
        entry = RecordEntry(state, action)
        self.entries.append(entry)
        return entry

    def truncate(self, index: int) -> None:
        """Keep entries [0, index]; later appends continue from there."""
        if not 0 <= index < len(self.entries):
            raise IndexError(f"Record index {index} out of range (0..{len(self.entries) - 1})")
        del self.entries[index + 1:]

    def count_occurrences(self, state: BoardState) -> int:
        """Number of entries whose fingerprint matches state's."""
        target = state.fingerprint()
        return sum(1 for e in self.entries if e.state.fingerprint() == target)

    def player_has_moved(self, player: int) -> bool:
        """Check if player made any move in this record."""
        return any(
            previous.state.current_player == player
            for previous in self.entries[:-1]
        )


def game_status(record: GameRecord) -> GameStatus:
    """
    Compute the status of a record from its last transition.

    Checks, in order: Royal captured, opponent eliminated, threefold
    repetition, side to move without any action.
    """
    entry = record.entries[-1]
    state = entry.state
    to_move = state.current_player
    mover = opponent(to_move)

    if entry.action is not None and entry.action.captured_key is not None:
        previous = record.entries[-2].state
        captured = previous.get_piece(entry.action.captured_key)
        if captured is not None and captured.kind.is_royal:
            return GameStatus.won(mover, "royal_captured")

    if state.count_pieces(to_move) == 0:
        return GameStatus.won(mover, "elimination")

    if record.count_occurrences(state) >= REPETITION_LIMIT:
        return GameStatus.drawn("repetition")

    if not MoveGenerator.has_any_action(state, to_move):
        return GameStatus.won(mover, "no_moves")

    return IN_PROGRESS


class Game:
    """
    A game in progress over a GameRecord.

    Attributes:
        record: The record being played (owned by the caller if passed in)
        status: Current status; terminal statuses are absorbing
        generation: Bumped on every change, used to discard stale AI results
    """

    def __init__(self, record: Optional[GameRecord] = None):
        self.record = record if record is not None else GameRecord()
        self.status = game_status(self.record)
        self.generation = 0

    @classmethod
    def new_game(cls) -> Game:
        return cls()

    @property
    def state(self) -> BoardState:
        """Current board snapshot."""
        return self.record.current

    @property
    def ply(self) -> int:
        """Number of moves played."""
        return len(self.record) - 1

    @property
    def is_over(self) -> bool:
        return self.status.is_terminal

    def legal_actions(self, piece: Union[str, Position]) -> LegalActions:
        """
        Step and capture destinations for a piece, given by key or cell.

        Raises IllegalActionError if no such piece is on the board.
        """
        if isinstance(piece, str):
            found = self.state.get_piece(piece)
        else:
            found = self.state.piece_at(piece)
        if found is None:
            raise IllegalActionError(f"No piece {piece!r} on the board")
        return MoveGenerator.get_legal_actions(found, self.state)

    def all_actions(self) -> list[Action]:
        """All actions for the side to move (empty once the game is over)."""
        if self.is_over:
            return []
        return MoveGenerator.get_all_actions(self.state)

    def apply(self, action: Action) -> GameStatus:
        """
        Validate and apply an action, then update the status.

        Raises GameOverError if the game already ended and IllegalActionError
        if the action is not legal now. The record is untouched on error.
        """
        if self.is_over:
            raise GameOverError(f"Game is over: {self.status.kind.value}")

        new_state = apply_action(self.state, action)
        self.record.append(new_state, action)
        self.generation += 1
        self.status = game_status(self.record)

        if self.is_over:
            logger.info(
                "Game over after %d moves: %s (winner=%s, reason=%s)",
                self.ply, self.status.kind.value, self.status.winner, self.status.reason
            )
        return self.status

    def play(self, origin: Position, destination: Position) -> GameStatus:
        """Move the piece on origin to destination."""
        if self.is_over:
            raise GameOverError(f"Game is over: {self.status.kind.value}")
        return self.apply(find_action(self.state, origin, destination))

    def apply_if_current(self, action: Action, generation: int) -> bool:
        """
        Apply an action computed against an earlier snapshot.

        Returns False (and applies nothing) if the game changed or ended since
        the snapshot with the given generation was taken.
        """
        if generation != self.generation or self.is_over:
            logger.debug("Discarding stale action %s (generation %d != %d)",
                         action, generation, self.generation)
            return False
        self.apply(action)
        return True

    def invalidate(self) -> None:
        """Make every action computed against the current snapshot stale."""
        self.generation += 1

    def undo_to(self, index: int) -> None:
        """Return to record entry index; the following entries are dropped."""
        self.record.truncate(index)
        self.generation += 1
        self.status = game_status(self.record)

    def undo(self, moves: int = 1) -> None:
        """Take back the last moves."""
        if moves > self.ply:
            raise IndexError(f"Cannot undo {moves} moves, only {self.ply} played")
        self.undo_to(self.ply - moves)

    def reset(self, initial: Optional[BoardState] = None) -> None:
        """Start over from the initial layout."""
        self.record.entries[:] = [RecordEntry(initial or BoardState.new_game())]
        self.generation += 1
        self.status = game_status(self.record)

    def request_computer_move(
        self,
        engine: SearchEngine,
        side: int,
        difficulty: Difficulty
    ) -> Optional[Action]:
        """
        Ask the engine for a move for side.

        Returns None when the game is over, when it is not side's turn, or
        when side has no legal action. The engine's first move in a record is
        a uniform random one, whatever the difficulty.
        """
        if self.is_over or self.state.current_player != side:
            return None
        first_move = not self.record.player_has_moved(side)
        return engine.choose_action(self.state, side, difficulty, first_move=first_move)
