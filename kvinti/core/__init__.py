"""Core game logic: board tables, state, move generation and game flow."""

from .board import BOARD_SIZE, PieceType, CAPTURE_OFFSETS
from .errors import KvintiError, IllegalActionError, GameOverError
from .state import BoardState, Piece
from .moves import Action, LegalActions, MoveGenerator, apply_action, legal_actions
from .game import Game, GameRecord, GameStatus, StatusKind, game_status
