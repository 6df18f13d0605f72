"""
Board state representation for Kvinti.

A BoardState is an immutable snapshot: the pieces on the board plus the
player to move. Successor states are built by the move module, never by
mutating an existing snapshot.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from functools import cached_property
from typing import Optional
import numpy as np

from .board import (
    BOARD_SIZE, COLUMN_LABELS, PLAYERS,
    Position, PieceType, is_valid_pos, opponent
)


@dataclass(frozen=True)
class Piece:
    """
    A single piece on the board.

    Attributes:
        key: Stable identity for the whole game (e.g. 'W1', 'BK')
        kind: Piece type, which decides step and capture patterns
        player: Owner, 1 or 2
        pos: Current (row, col)
    """
    key: str
    kind: PieceType
    player: int
    pos: Position

    def moved_to(self, pos: Position) -> Piece:
        return replace(self, pos=pos)


INITIAL_PIECES: tuple[Piece, ...] = (
    # Player 1 (bottom)
    Piece('WK', PieceType.KING, 1, (6, 3)),  # d1
    Piece('W5', PieceType.T5, 1, (6, 2)),    # c1
    Piece('W4', PieceType.T4, 1, (5, 2)),    # c2
    Piece('W3', PieceType.T3, 1, (5, 3)),    # d2
    Piece('W1', PieceType.T1, 1, (6, 4)),    # e1
    Piece('W2', PieceType.T2, 1, (5, 4)),    # e2
    # Player 2 (top)
    Piece('BK', PieceType.KING, 2, (0, 3)),  # d7
    Piece('B2', PieceType.T2, 2, (1, 2)),    # c6
    Piece('B1', PieceType.T1, 2, (0, 2)),    # c7
    Piece('B3', PieceType.T3, 2, (1, 3)),    # d6
    Piece('B4', PieceType.T4, 2, (1, 4)),    # e6
    Piece('B5', PieceType.T5, 2, (0, 4)),    # e7
)

INITIAL_PLAYER = 1

# Codes used by to_array(); player 2 pieces are negated
KIND_CODES = {
    PieceType.T1: 1,
    PieceType.T2: 2,
    PieceType.T3: 3,
    PieceType.T4: 4,
    PieceType.T5: 5,
    PieceType.KING: 6,
}


@dataclass(frozen=True, eq=False)
class BoardState:
    """
    Represents one position of a Kvinti game.

    Attributes:
        pieces: Pieces on the board. Order is irrelevant for equality but
            fixes move enumeration order.
        current_player: Player to move, 1 or 2
    """
    pieces: tuple[Piece, ...] = INITIAL_PIECES
    current_player: int = INITIAL_PLAYER

    def __post_init__(self) -> None:
        # Accept any iterable of pieces, store a tuple
        object.__setattr__(self, 'pieces', tuple(self.pieces))
        if self.current_player not in PLAYERS:
            raise ValueError(f"Invalid player to move: {self.current_player}")
        seen_cells: set[Position] = set()
        seen_keys: set[str] = set()
        for piece in self.pieces:
            if not is_valid_pos(*piece.pos):
                raise ValueError(f"Piece {piece.key} is off the board at {piece.pos}")
            if piece.pos in seen_cells:
                raise ValueError(f"Two pieces share cell {piece.pos}")
            if piece.key in seen_keys:
                raise ValueError(f"Duplicate piece key {piece.key}")
            seen_cells.add(piece.pos)
            seen_keys.add(piece.key)

    @classmethod
    def new_game(cls) -> BoardState:
        """Create a new game in the starting position."""
        return cls()

    @cached_property
    def occupancy(self) -> dict[Position, Piece]:
        """Map of occupied cells to pieces."""
        return {p.pos: p for p in self.pieces}

    @property
    def opponent_player(self) -> int:
        return opponent(self.current_player)

    def piece_at(self, pos: Position) -> Optional[Piece]:
        """Return the piece on pos, or None if the cell is empty."""
        return self.occupancy.get(pos)

    def get_piece(self, key: str) -> Optional[Piece]:
        """Return the piece with the given identity key, if still on the board."""
        for piece in self.pieces:
            if piece.key == key:
                return piece
        return None

    def pieces_of(self, player: int) -> list[Piece]:
        return [p for p in self.pieces if p.player == player]

    def has_royal(self, player: int) -> bool:
        """Check if player's Royal is still on the board."""
        return any(p.player == player and p.kind.is_royal for p in self.pieces)

    def count_pieces(self, player: int) -> int:
        return sum(1 for p in self.pieces if p.player == player)

    def fingerprint(self) -> str:
        """
        Canonical text of positions and side to move.

        Pieces are sorted by key, so states reached in different orders
        compare equal.
        """
        ordered = sorted(self.pieces, key=lambda p: p.key)
        positions = ';'.join(f"{p.key}:{p.pos[0]},{p.pos[1]}" for p in ordered)
        return f"{positions}|player:{self.current_player}"

    def to_array(self) -> np.ndarray:
        """
        Convert state to a (7, 7) int8 grid.

        0 = empty, 1..6 = player 1 piece (T1..T5, Royal), -1..-6 = player 2.
        """
        grid = np.zeros((BOARD_SIZE, BOARD_SIZE), dtype=np.int8)
        for piece in self.pieces:
            code = KIND_CODES[piece.kind]
            grid[piece.pos] = code if piece.player == 1 else -code
        return grid

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BoardState):
            return NotImplemented
        return (
            self.current_player == other.current_player and
            frozenset(self.pieces) == frozenset(other.pieces)
        )

    def __hash__(self) -> int:
        return hash((frozenset(self.pieces), self.current_player))

    def __repr__(self) -> str:
        """Pretty print the board. W = player 1, B = player 2."""
        lines = []
        for row in range(BOARD_SIZE):
            rank = f"{BOARD_SIZE - row} |"
            for col in range(BOARD_SIZE):
                piece = self.piece_at((row, col))
                rank += " " + (piece_symbol(piece) if piece else "..")
            lines.append(rank)

        lines.append("  +" + "-" * (BOARD_SIZE * 3))
        lines.append("    " + "  ".join(COLUMN_LABELS))
        lines.append(f"\nPlayer {self.current_player} to move")

        return "\n".join(lines)


def piece_symbol(piece: Piece) -> str:
    """Two-character symbol: owner letter plus type digit or 'K' (e.g. 'W3', 'BK')."""
    owner = 'W' if piece.player == 1 else 'B'
    return owner + piece.kind.value[1]
