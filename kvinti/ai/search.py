"""
Minimax search with alpha-beta pruning for Kvinti.

Three strength tiers:
- weak: uniform random legal action
- moderate: minimax to depth 2
- strong: minimax to depth 4

No move ordering and no transposition table; among equally valued root
actions the first one in enumeration order wins.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol
import logging
import math
import time
import numpy as np

from ..core.board import opponent
from ..core.moves import Action, MoveGenerator, successor
from ..core.state import BoardState
from .evaluator import MaterialEvaluator

logger = logging.getLogger(__name__)


class Evaluator(Protocol):
    """Protocol for position evaluators."""
    def evaluate(self, state: BoardState, perspective: int) -> float:
        """Return a score for state from perspective's point of view."""
        ...


class Difficulty(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"

    @classmethod
    def parse(cls, name: str) -> Difficulty:
        """Accept tier names and the easy/medium/hard aliases."""
        aliases = {"easy": cls.WEAK, "medium": cls.MODERATE, "hard": cls.STRONG}
        key = name.strip().lower()
        if key in aliases:
            return aliases[key]
        return cls(key)


@dataclass
class SearchConfig:
    """Configuration for the search engine."""
    moderate_depth: int = 2  # Plies searched at moderate strength
    strong_depth: int = 4    # Plies searched at strong strength
    seed: Optional[int] = None  # Seed for random choices (weak tier, first move)

    def __post_init__(self) -> None:
        if self.moderate_depth < 1 or self.strong_depth < 1:
            raise ValueError("Search depths must be at least 1")

    def depth_for(self, difficulty: Difficulty) -> Optional[int]:
        """Search depth for a tier, None for the random tier."""
        if difficulty is Difficulty.MODERATE:
            return self.moderate_depth
        if difficulty is Difficulty.STRONG:
            return self.strong_depth
        return None


@dataclass
class SearchStats:
    """Statistics of one move choice."""
    difficulty: Optional[Difficulty] = None
    depth: int = 0
    num_actions: int = 0
    nodes: int = 0
    cutoffs: int = 0
    value: Optional[float] = None
    time_ms: int = 0
    random: bool = False


class SearchEngine:
    """
    Chooses actions for a computer player.

    The engine only reads the state it is given; all explored positions are
    built fresh and dropped after scoring. Node and cutoff counters live in
    the SearchStats of each call, so concurrent searches never mix them.
    The random generator is shared, so callers serialize searches on one
    engine when reproducible picks matter.
    """

    def __init__(
        self,
        evaluator: Optional[Evaluator] = None,
        config: Optional[SearchConfig] = None,
        rng: Optional[np.random.Generator] = None
    ):
        self.evaluator = evaluator or MaterialEvaluator()
        self.config = config or SearchConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.last_stats: Optional[SearchStats] = None

    def search(
        self,
        state: BoardState,
        side: int,
        difficulty: Difficulty,
        first_move: bool = False
    ) -> tuple[Optional[Action], SearchStats]:
        """
        Pick an action for side and return it with the statistics of this call.

        If side is not the player to move in state, the position is searched
        as if it were. The action is None if side has no legal action.

        Args:
            first_move: Pick uniformly at random regardless of difficulty
        """
        if state.current_player != side:
            state = BoardState(state.pieces, side)

        start_time = time.time()
        actions = MoveGenerator.get_all_actions(state, side)
        stats = SearchStats(difficulty=difficulty, num_actions=len(actions))

        if not actions:
            logger.info("Player %d has no legal actions", side)
            return None, stats

        depth = self.config.depth_for(difficulty)
        if first_move or depth is None:
            stats.random = True
            action = self.random_action(actions)
        else:
            action, value = self.best_action(state, side, depth, actions, stats)
            stats.depth = depth
            stats.value = value

        stats.time_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            "Player %d (%s): %s value=%s depth=%d nodes=%d cutoffs=%d time=%dms",
            side, difficulty.value, action, stats.value, stats.depth,
            stats.nodes, stats.cutoffs, stats.time_ms
        )
        return action, stats

    def choose_action(
        self,
        state: BoardState,
        side: int,
        difficulty: Difficulty,
        first_move: bool = False
    ) -> Optional[Action]:
        """Pick an action for side; its statistics go to last_stats."""
        action, stats = self.search(state, side, difficulty, first_move=first_move)
        self.last_stats = stats
        return action

    def random_action(self, actions: list[Action]) -> Action:
        """Uniform choice over pooled steps and captures."""
        return actions[int(self.rng.integers(len(actions)))]

    def best_action(
        self,
        state: BoardState,
        side: int,
        depth: int,
        actions: Optional[list[Action]] = None,
        stats: Optional[SearchStats] = None
    ) -> tuple[Action, float]:
        """
        Root of the minimax search.

        Returns the first action with the highest value and that value. If
        every action loses (-inf), the first action is returned.
        """
        if stats is None:
            stats = SearchStats()
        if actions is None:
            actions = MoveGenerator.get_all_actions(state, side)
        if not actions:
            raise ValueError("No legal actions to search")

        best_action: Optional[Action] = None
        best_value = -math.inf

        for action in actions:
            # Alpha starts at the best root value found so far
            value = self.minimax(
                successor(state, action), depth - 1, best_value, math.inf, side, stats
            )
            if value > best_value:
                best_value = value
                best_action = action

        if best_action is None:
            return actions[0], best_value
        return best_action, best_value

    def minimax(
        self,
        state: BoardState,
        depth: int,
        alpha: float,
        beta: float,
        side: int,
        stats: Optional[SearchStats] = None
    ) -> float:
        """
        Minimax value of state for side.

        side maximizes, its opponent minimizes. Stops at depth 0, when either
        Royal is gone, or when the player to move has no action (scored as is).
        """
        if stats is None:
            stats = SearchStats()
        stats.nodes += 1

        if depth == 0 or not state.has_royal(side) or not state.has_royal(opponent(side)):
            return self.evaluator.evaluate(state, side)

        actions = MoveGenerator.get_all_actions(state)
        if not actions:
            return self.evaluator.evaluate(state, side)

        if state.current_player == side:
            max_eval = -math.inf
            for action in actions:
                evaluation = self.minimax(successor(state, action), depth - 1, alpha, beta, side, stats)
                max_eval = max(max_eval, evaluation)
                alpha = max(alpha, evaluation)
                if beta <= alpha:
                    stats.cutoffs += 1
                    break
            return max_eval
        else:
            min_eval = math.inf
            for action in actions:
                evaluation = self.minimax(successor(state, action), depth - 1, alpha, beta, side, stats)
                min_eval = min(min_eval, evaluation)
                beta = min(beta, evaluation)
                if beta <= alpha:
                    stats.cutoffs += 1
                    break
            return min_eval


def request_computer_move(
    state: BoardState,
    side: int,
    difficulty: Difficulty,
    engine: Optional[SearchEngine] = None,
    first_move: bool = False
) -> Optional[Action]:
    """Convenience function: choose an action with a fresh (or given) engine."""
    if engine is None:
        engine = SearchEngine()
    return engine.choose_action(state, side, difficulty, first_move=first_move)
