"""
Position evaluation for Kvinti search.

Material only: the Royal is worth more than an ordinary piece, and a missing
Royal is an outright win or loss. No positional or mobility terms.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import math

from ..core.board import PieceType, opponent
from ..core.state import BoardState


@dataclass
class EvalConfig:
    """Piece values used by the material evaluator."""
    royal_value: float = 5.0
    ordinary_value: float = 1.0


class MaterialEvaluator:
    """Scores a state from one player's point of view."""

    def __init__(self, config: Optional[EvalConfig] = None):
        self.config = config or EvalConfig()
        self.total_evals = 0

    def piece_value(self, kind: PieceType) -> float:
        return self.config.royal_value if kind.is_royal else self.config.ordinary_value

    def evaluate(self, state: BoardState, perspective: int) -> float:
        """
        Return the material balance for perspective.

        -inf if perspective's Royal is gone, +inf if the opponent's is.
        """
        self.total_evals += 1

        if not state.has_royal(perspective):
            return -math.inf
        if not state.has_royal(opponent(perspective)):
            return math.inf

        score = 0.0
        for piece in state.pieces:
            value = self.piece_value(piece.kind)
            score += value if piece.player == perspective else -value
        return score


_default_evaluator = MaterialEvaluator()


def evaluate(state: BoardState, perspective: int) -> float:
    """Evaluate with default piece values."""
    return _default_evaluator.evaluate(state, perspective)
