"""
Board geometry and piece tables for Kvinti.

Board layout (7 rows x 7 cols), rows counted from the top:

  7 | (0,0) (0,1) ... (0,6)     <- player 2 home row
  6 | (1,0)
  ...
  1 | (6,0) (6,1) ... (6,6)     <- player 1 home row
    +-------------------------
        a     b   ...   g

Position = (row, col); cell name = column letter + (BOARD_SIZE - row).
"""

from __future__ import annotations
from enum import Enum
from typing import Iterator

# Board dimensions
BOARD_SIZE = 7

COLUMN_LABELS = "abcdefg"

PLAYERS = (1, 2)

Position = tuple[int, int]


class PieceType(str, Enum):
    """The six piece kinds. Values are the identifiers used in move text."""
    T1 = "F1"
    T2 = "F2"
    T3 = "F3"
    T4 = "F4"
    T5 = "F5"
    KING = "FK"

    @property
    def is_royal(self) -> bool:
        return self is PieceType.KING


# Step directions (row_delta, col_delta): up, down, left, right
ORTHOGONAL_STEPS: tuple[Position, ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))
ROYAL_STEPS: tuple[Position, ...] = ((0, -1), (0, 1))

# Jump-capture offsets per piece type
CAPTURE_OFFSETS: dict[PieceType, tuple[Position, ...]] = {
    PieceType.T1: ((-4, 0), (4, 0), (0, -4), (0, 4)),
    PieceType.T2: (
        (-2, -1), (-2, 1), (2, -1), (2, 1),
        (-1, -2), (-1, 2), (1, -2), (1, 2),
    ),
    PieceType.T3: ((-2, 0), (2, 0), (0, -2), (0, 2)),
    PieceType.T4: ((-2, -2), (-2, 2), (2, -2), (2, 2)),
    PieceType.T5: (
        (-3, -1), (-3, 1), (3, -1), (3, 1),
        (-1, -3), (-1, 3), (1, -3), (1, 3),
    ),
    PieceType.KING: (),
}


def step_directions(kind: PieceType) -> tuple[Position, ...]:
    """Step directions for a piece type (Royal moves horizontally only)."""
    return ROYAL_STEPS if kind.is_royal else ORTHOGONAL_STEPS


def capture_offsets(kind: PieceType) -> tuple[Position, ...]:
    """Jump-capture offsets for a piece type."""
    return CAPTURE_OFFSETS[kind]


def is_valid_pos(row: int, col: int) -> bool:
    """Check if (row, col) is on the board."""
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


def iter_targets(pos: Position, deltas: tuple[Position, ...]) -> Iterator[Position]:
    """Yield in-bounds cells reached from pos by each delta, in delta order."""
    row, col = pos
    for dr, dc in deltas:
        r, c = row + dr, col + dc
        if is_valid_pos(r, c):
            yield (r, c)


def opponent(player: int) -> int:
    """Return the other player (1 <-> 2)."""
    return 2 if player == 1 else 1
