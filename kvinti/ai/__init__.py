"""AI components: material evaluator and minimax search."""

from .evaluator import MaterialEvaluator, EvalConfig, evaluate
from .search import SearchEngine, SearchConfig, SearchStats, Difficulty, request_computer_move
