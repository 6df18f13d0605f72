"""
Game notation for Kvinti (PGN-like format).

Format example:
```
[Event "Kvinti Game"]
[Date "2026.10.19"]
[White "Player 1"]
[Black "Player 2"]
[Result "1-0"]

1. e2-e3 e6-e5 2. e1-e5 d7-c7 ...
```

Cells are named like chess squares: column letter a-g, then the row label
counted from the bottom (row index 6 is "1", row index 0 is "7").
Every token is one complete move "origin-destination"; captures are implied
by the destination being occupied and are not marked in the token.
History lines shown to players use the long form "F1: e1-e5xFK".
"""

from __future__ import annotations
import re
from datetime import date
from typing import Optional

from .board import BOARD_SIZE, COLUMN_LABELS, Position, is_valid_pos
from .game import Game, GameRecord, GameStatus, StatusKind
from .moves import Action, find_action
from .state import BoardState


def position_to_notation(pos: Position) -> str:
    """Convert (row, col) to a cell name, e.g. (6, 3) -> 'd1'."""
    row, col = pos
    if not is_valid_pos(row, col):
        raise ValueError(f"Position off the board: {pos}")
    return f"{COLUMN_LABELS[col]}{BOARD_SIZE - row}"


def notation_to_position(cell: str) -> Position:
    """Convert a cell name to (row, col), e.g. 'd1' -> (6, 3)."""
    cell = cell.strip().lower()
    if len(cell) != 2 or cell[0] not in COLUMN_LABELS or not cell[1].isdigit():
        raise ValueError(f"Invalid cell: {cell!r}")
    col = COLUMN_LABELS.index(cell[0])
    row = BOARD_SIZE - int(cell[1])
    if not is_valid_pos(row, col):
        raise ValueError(f"Invalid cell: {cell!r}")
    return (row, col)


def action_to_algebraic(action: Action) -> str:
    """Short form of a move, e.g. 'e2-e3'."""
    return f"{position_to_notation(action.origin)}-{position_to_notation(action.destination)}"


def algebraic_to_cells(text: str) -> tuple[Position, Position]:
    """Parse 'e2-e3' into (origin, destination)."""
    parts = text.strip().split('-')
    if len(parts) != 2:
        raise ValueError(f"Invalid move format: {text}")
    return notation_to_position(parts[0]), notation_to_position(parts[1])


def algebraic_to_action(state: BoardState, text: str) -> Action:
    """Parse a short move against a state. Raises IllegalActionError if not legal."""
    origin, destination = algebraic_to_cells(text)
    return find_action(state, origin, destination)


def action_to_notation(state: BoardState, action: Action) -> str:
    """
    Long history form, e.g. 'F2: e2-e3' or 'F1: e1-e5xFK'.

    state is the position before the action was played.
    """
    piece = state.get_piece(action.piece_key)
    kind = piece.kind.value if piece else '?'
    text = f"{kind}: {action_to_algebraic(action)}"
    if action.captured_key is not None:
        captured = state.get_piece(action.captured_key)
        text += f"x{captured.kind.value if captured else '?'}"
    return text


def history_lines(record: GameRecord) -> list[str]:
    """Long-form description of every move in a record."""
    lines = []
    for previous, entry in zip(record.entries, record.entries[1:]):
        lines.append(action_to_notation(previous.state, entry.action))
    return lines


def status_to_result(status: GameStatus) -> str:
    """PGN result token for a status."""
    if status.kind is StatusKind.WON:
        return "1-0" if status.winner == 1 else "0-1"
    if status.kind is StatusKind.DRAWN:
        return "1/2-1/2"
    return "*"


def record_to_text(
    record: GameRecord,
    event: str = "Kvinti Game",
    white: str = "Player 1",
    black: str = "Player 2",
    game_date: Optional[str] = None,
    status: Optional[GameStatus] = None,
) -> str:
    """Export a record to PGN-like text."""
    if game_date is None:
        game_date = date.today().strftime("%Y.%m.%d")
    if status is None:
        status = Game(record).status
    result = status_to_result(status)

    lines = [
        f'[Event "{event}"]',
        f'[Date "{game_date}"]',
        f'[White "{white}"]',
        f'[Black "{black}"]',
        f'[Result "{result}"]',
        '',
    ]

    parts = []
    move_num = 1
    for entry_index, entry in enumerate(record.entries[1:], start=1):
        mover = record.entries[entry_index - 1].state.current_player
        alg = action_to_algebraic(entry.action)
        if mover == 1:
            parts.append(f"{move_num}. {alg}")
        else:
            if entry_index == 1:
                parts.append(f"{move_num}... {alg}")
            else:
                parts.append(alg)
            move_num += 1

    # Word wrap at 80 chars
    wrapped = []
    current_line = ""
    for word in ' '.join(parts).split():
        if len(current_line) + len(word) + 1 > 80:
            wrapped.append(current_line)
            current_line = word
        else:
            current_line = f"{current_line} {word}".strip()
    if current_line:
        wrapped.append(current_line)
    lines.extend(wrapped)

    if result != "*":
        lines.append(result)

    return '\n'.join(lines)


def record_from_text(text: str, initial: Optional[BoardState] = None) -> GameRecord:
    """
    Parse PGN-like text and replay it into a record.

    Raises IllegalActionError on the first token that is not a legal move,
    and GameOverError if moves continue after the game ended.
    """
    tag_pattern = r'\[(\w+)\s+"([^"]*)"\]'
    move_text = re.sub(tag_pattern, '', text)
    move_text = re.sub(r'\s*(1-0|0-1|1/2-1/2|\*)\s*$', '', move_text)

    game = Game(GameRecord(initial))
    for token in move_text.split():
        # Skip move numbers like "1." or "12..."
        if re.match(r'^\d+\.+$', token):
            continue
        origin, destination = algebraic_to_cells(token)
        game.play(origin, destination)

    return game.record


def parse_tags(text: str) -> dict[str, str]:
    """Extract tag pairs (lowercased names) from PGN-like text."""
    return {
        tag.lower(): value
        for tag, value in re.findall(r'\[(\w+)\s+"([^"]*)"\]', text)
    }
