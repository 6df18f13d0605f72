"""
Move generation for Kvinti.

Every piece has two independent action sets: steps (one cell into an empty
square) and jump-captures (fixed offsets onto an opponent's square). Neither
is forced; callers choose among both.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, Optional

from .board import Position, capture_offsets, iter_targets, opponent, step_directions
from .errors import IllegalActionError
from .state import BoardState, Piece


@dataclass(frozen=True)
class Action:
    """
    A single move.

    Attributes:
        piece_key: Identity of the moving piece
        origin: Cell the piece leaves
        destination: Cell the piece lands on
        captured_key: Identity of the captured piece, None for a step
    """
    piece_key: str
    origin: Position
    destination: Position
    captured_key: Optional[str] = None

    @property
    def is_capture(self) -> bool:
        return self.captured_key is not None


@dataclass(frozen=True)
class LegalActions:
    """Step and capture destinations of one piece, kept separate."""
    steps: tuple[Position, ...]
    captures: tuple[Position, ...]

    @property
    def step_set(self) -> frozenset[Position]:
        return frozenset(self.steps)

    @property
    def capture_set(self) -> frozenset[Position]:
        return frozenset(self.captures)

    def __bool__(self) -> bool:
        return bool(self.steps or self.captures)

    def __contains__(self, pos: object) -> bool:
        return pos in self.steps or pos in self.captures


class MoveGenerator:
    """Generates legal actions against a board snapshot."""

    @staticmethod
    def get_step_moves(piece: Piece, state: BoardState) -> Iterator[Position]:
        """
        Generate step destinations for a piece.

        Ordinary pieces step orthogonally, the Royal horizontally only.
        The target cell must be empty.
        """
        occupancy = state.occupancy
        for target in iter_targets(piece.pos, step_directions(piece.kind)):
            if target not in occupancy:
                yield target

    @staticmethod
    def get_capture_moves(piece: Piece, state: BoardState) -> Iterator[Position]:
        """
        Generate jump-capture destinations for a piece.

        A jump lands directly on the target cell; nothing in between matters.
        It is legal only if an opponent piece sits on that cell.
        """
        occupancy = state.occupancy
        for target in iter_targets(piece.pos, capture_offsets(piece.kind)):
            victim = occupancy.get(target)
            if victim is not None and victim.player != piece.player:
                yield target

    @staticmethod
    def get_legal_actions(piece: Piece, state: BoardState) -> LegalActions:
        """Get step and capture destinations for one piece."""
        return LegalActions(
            steps=tuple(MoveGenerator.get_step_moves(piece, state)),
            captures=tuple(MoveGenerator.get_capture_moves(piece, state)),
        )

    @staticmethod
    def get_piece_actions(piece: Piece, state: BoardState) -> list[Action]:
        """Get all actions of one piece: steps first, then captures."""
        actions = [
            Action(piece.key, piece.pos, target)
            for target in MoveGenerator.get_step_moves(piece, state)
        ]
        occupancy = state.occupancy
        for target in MoveGenerator.get_capture_moves(piece, state):
            actions.append(Action(piece.key, piece.pos, target, occupancy[target].key))
        return actions

    @staticmethod
    def get_all_actions(state: BoardState, player: Optional[int] = None) -> list[Action]:
        """
        Get all actions for a player (default: the side to move).

        Pooled over pieces in board order with no move ordering.
        """
        if player is None:
            player = state.current_player
        actions: list[Action] = []
        for piece in state.pieces:
            if piece.player == player:
                actions.extend(MoveGenerator.get_piece_actions(piece, state))
        return actions

    @staticmethod
    def has_any_action(state: BoardState, player: Optional[int] = None) -> bool:
        """Check if a player has at least one action, without building the list."""
        if player is None:
            player = state.current_player
        for piece in state.pieces:
            if piece.player != player:
                continue
            if next(MoveGenerator.get_step_moves(piece, state), None) is not None:
                return True
            if next(MoveGenerator.get_capture_moves(piece, state), None) is not None:
                return True
        return False


def successor(state: BoardState, action: Action) -> BoardState:
    """
    Build the state after an action without validating it.

    Removes the captured piece, relocates the mover and flips the side to move.
    Used by the search on actions it generated itself.
    """
    pieces = []
    for piece in state.pieces:
        if piece.key == action.piece_key:
            pieces.append(piece.moved_to(action.destination))
        elif piece.pos != action.destination:
            pieces.append(piece)
    return BoardState(tuple(pieces), opponent(state.current_player))


def find_action(state: BoardState, origin: Position, destination: Position) -> Action:
    """
    Build the action that moves the piece on origin to destination.

    Raises IllegalActionError unless the piece belongs to the side to move
    and destination is among its current steps or captures.
    """
    piece = state.piece_at(origin)
    if piece is None:
        raise IllegalActionError(f"No piece at {origin}")
    if piece.player != state.current_player:
        raise IllegalActionError(
            f"Piece {piece.key} belongs to player {piece.player}, "
            f"but player {state.current_player} is to move"
        )
    for action in MoveGenerator.get_piece_actions(piece, state):
        if action.destination == destination:
            return action
    raise IllegalActionError(f"Piece {piece.key} cannot move from {origin} to {destination}")


def apply_action(state: BoardState, action: Action) -> BoardState:
    """
    Apply an action and return the successor state.

    Legality is recomputed from the given state, never trusted from a cached
    list. The input state is left untouched.
    """
    piece = state.get_piece(action.piece_key)
    if piece is None or piece.pos != action.origin:
        raise IllegalActionError(f"Piece {action.piece_key} is not at {action.origin}")
    legal = find_action(state, action.origin, action.destination)
    if legal != action:
        raise IllegalActionError(
            f"Capture target mismatch: expected {legal.captured_key}, got {action.captured_key}"
        )
    return successor(state, legal)


# Convenience functions
def legal_actions(piece: Piece, state: BoardState) -> LegalActions:
    """Get step and capture destinations for one piece."""
    return MoveGenerator.get_legal_actions(piece, state)


def get_all_actions(state: BoardState, player: Optional[int] = None) -> list[Action]:
    """Get all actions for a player (default: side to move)."""
    return MoveGenerator.get_all_actions(state, player)
