#!/usr/bin/env python3
"""
Terminal-based Kvinti game client.

Play against the computer or watch computer vs computer games.
"""

from __future__ import annotations
import argparse
import logging
import sys
import time
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from kvinti.ai.search import Difficulty, SearchConfig, SearchEngine
from kvinti.core.board import BOARD_SIZE, COLUMN_LABELS, Position
from kvinti.core.errors import IllegalActionError
from kvinti.core.game import Game, GameStatus, StatusKind
from kvinti.core.notation import (
    action_to_notation, algebraic_to_action, notation_to_position,
    position_to_notation, record_to_text
)
from kvinti.core.state import BoardState, piece_symbol


def print_board(state: BoardState, highlight: set[Position] = None, captures: set[Position] = None) -> None:
    """Print the board with optional destination highlighting.

    Symbols:
        W1..W5, WK = player 1 pieces (bottom)
        B1..B5, BK = player 2 pieces (top)
        Green = step destination, red = capture destination
    """
    # ANSI color codes
    GREEN = '\033[92m'
    RED = '\033[91m'
    RESET = '\033[0m'

    highlight = highlight or set()
    captures = captures or set()

    print()
    print("  +" + "-" * (BOARD_SIZE * 3 + 1) + "+")
    for row in range(BOARD_SIZE):
        line = f"{BOARD_SIZE - row} |"
        for col in range(BOARD_SIZE):
            piece = state.piece_at((row, col))
            sym = piece_symbol(piece) if piece else '..'
            if (row, col) in captures:
                line += f" {RED}{sym}{RESET}"
            elif (row, col) in highlight:
                line += f" {GREEN}{sym}{RESET}"
            else:
                line += f" {sym}"
        line += " |"
        print(line)
    print("  +" + "-" * (BOARD_SIZE * 3 + 1) + "+")
    print("    " + "  ".join(COLUMN_LABELS))
    print()


def describe_status(status: GameStatus) -> str:
    if status.kind is StatusKind.WON:
        reasons = {
            "royal_captured": "captured the Royal",
            "elimination": "took every opposing piece",
            "no_moves": "left the opponent without a move",
        }
        return f"Player {status.winner} wins: {reasons.get(status.reason, status.reason)}!"
    if status.kind is StatusKind.DRAWN:
        return "Draw by threefold repetition."
    return "Game in progress."


def show_piece_actions(game: Game, cell: str) -> None:
    """Display step and capture destinations for the piece on a cell."""
    try:
        pos = notation_to_position(cell)
        actions = game.legal_actions(pos)
    except (ValueError, IllegalActionError) as e:
        print(e)
        return

    print_board(game.state, set(actions.steps), set(actions.captures))
    steps = ", ".join(position_to_notation(p) for p in actions.steps) or "none"
    caps = ", ".join(position_to_notation(p) for p in actions.captures) or "none"
    print(f"Steps: {steps}")
    print(f"Captures: {caps}")


def human_turn(game: Game, player: int) -> bool:
    """Prompt until the human makes a move. Returns False to quit."""
    print(f"Your turn (Player {player})")

    while True:
        try:
            user_input = input("> ").strip().lower()
        except EOFError:
            return False

        if user_input in ['q', 'quit', 'exit']:
            print("Thanks for playing!")
            return False
        elif user_input in ['h', 'help', '?']:
            print("Enter moves like 'e2-e3' to move a piece")
            print("'m e2' to see actions of a piece, 'u' to undo, 'p' to print the record, 'q' to quit")
        elif user_input.startswith('m'):
            parts = user_input.split()
            if len(parts) != 2:
                print("Usage: m <cell>, e.g. 'm e2'")
            else:
                show_piece_actions(game, parts[1])
        elif user_input in ['u', 'undo']:
            # Undo the computer reply too, so it is the human's turn again
            if game.ply >= 2:
                game.undo(2)
                print("Move undone.")
                print_board(game.state)
            else:
                print("Nothing to undo.")
        elif user_input in ['p', 'pgn']:
            print(record_to_text(game.record, status=game.status))
        else:
            before = game.state
            try:
                action = algebraic_to_action(before, user_input)
            except ValueError:
                print(f"Invalid format: {user_input}. Use notation like 'e2-e3'")
                continue
            except IllegalActionError as e:
                print(f"Illegal move: {e}")
                continue
            game.apply(action)
            print(f"You played: {action_to_notation(before, action)}")
            return True


def computer_turn(game: Game, engine: SearchEngine, player: int, difficulty: Difficulty, delay: float) -> bool:
    """Let the engine move. Returns False if it has no move."""
    print(f"Computer thinking ({difficulty.value})...")
    if delay > 0:
        time.sleep(delay)

    before = game.state
    action = game.request_computer_move(engine, player, difficulty)
    if action is None:
        print("Computer has no legal move.")
        return False

    game.apply(action)
    stats = engine.last_stats
    print(f"Computer plays: {action_to_notation(before, action)}"
          f" ({stats.nodes} nodes, {stats.time_ms} ms)")
    return True


def play_human_vs_ai(
    human_player: int = 1,
    difficulty: Difficulty = Difficulty.MODERATE,
    seed: int = None,
    delay: float = 0.0
) -> None:
    """Play a game: human vs computer."""
    game = Game.new_game()
    engine = SearchEngine(config=SearchConfig(seed=seed))
    ai_player = 2 if human_player == 1 else 1

    print("\n=== Kvinti ===")
    print(f"You are Player {human_player} ({'W, bottom' if human_player == 1 else 'B, top'})")
    print("Commands: move (e.g. 'e2-e3'), 'm e2' for piece actions, 'u' undo, 'q' quit")
    print("Goal: capture the opposing Royal (K)!")

    while not game.is_over:
        print_board(game.state)
        player = game.state.current_player

        if player == human_player:
            if not human_turn(game, player):
                return
        elif not computer_turn(game, engine, ai_player, difficulty, delay):
            break

    print_board(game.state)
    print(describe_status(game.status))


def watch_ai_vs_ai(
    difficulty: Difficulty = Difficulty.MODERATE,
    seed: int = None,
    delay: float = 1.0,
    max_moves: int = 200
) -> None:
    """Watch the computer play against itself."""
    game = Game.new_game()
    engine = SearchEngine(config=SearchConfig(seed=seed))

    print("\n=== Computer vs Computer ===")
    print(f"Difficulty: {difficulty.value}")

    while not game.is_over and game.ply < max_moves:
        print_board(game.state)
        player = game.state.current_player
        print(f"Move {game.ply + 1}, Player {player}")
        if not computer_turn(game, engine, player, difficulty, delay):
            break

    print_board(game.state)
    if game.is_over:
        print(f"Game over after {game.ply} moves. {describe_status(game.status)}")
    else:
        print(f"Stopped after {game.ply} moves.")


def main():
    parser = argparse.ArgumentParser(description='Kvinti Terminal Client')
    parser.add_argument('--difficulty', type=str, default='moderate',
                        help='weak/moderate/strong (or easy/medium/hard)')
    parser.add_argument('--watch', action='store_true', help='Watch computer vs computer')
    parser.add_argument('--play-as', type=int, choices=[1, 2], default=1,
                        help='Play as player 1 (W, bottom) or 2 (B, top)')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for the engine')
    parser.add_argument('--delay', type=float, default=None,
                        help='Computer thinking delay in seconds')
    parser.add_argument('--log-level', type=str, default='WARNING', help='Logging level')

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        difficulty = Difficulty.parse(args.difficulty)
    except ValueError:
        parser.error(f"Unknown difficulty: {args.difficulty}")

    if args.watch:
        delay = 1.0 if args.delay is None else args.delay
        watch_ai_vs_ai(difficulty, args.seed, delay)
    else:
        delay = 0.8 if args.delay is None else args.delay
        play_human_vs_ai(args.play_as, difficulty, args.seed, delay)


if __name__ == '__main__':
    main()
