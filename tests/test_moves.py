"""Tests for move generation and action application."""

import pytest
import sys
from pathlib import Path
import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from kvinti.core.board import BOARD_SIZE, PieceType, capture_offsets, is_valid_pos
from kvinti.core.errors import IllegalActionError
from kvinti.core.game import Game
from kvinti.core.moves import (
    Action, MoveGenerator, apply_action, find_action, get_all_actions,
    legal_actions, successor
)
from kvinti.core.state import BoardState, Piece


def board(*pieces, player=1):
    return BoardState(tuple(pieces), player)


class TestInitialPosition:
    def test_t2_steps_from_start(self):
        state = BoardState.new_game()
        w2 = state.get_piece('W2')
        actions = legal_actions(w2, state)
        # Up to e3 and right to f2; down and left are occupied by friends
        assert actions.steps == ((4, 4), (5, 5))
        assert actions.captures == ()

    def test_no_captures_at_start(self):
        state = BoardState.new_game()
        for piece in state.pieces:
            assert legal_actions(piece, state).captures == ()

    def test_mirrored_piece_after_first_move(self):
        """After e2-e3, the piece on e6 can step to e5 but capture nothing."""
        game = Game.new_game()
        game.play((5, 4), (4, 4))

        b4 = game.state.piece_at((1, 4))
        assert b4.player == 2
        actions = game.legal_actions((1, 4))
        assert (2, 4) in actions.step_set
        assert actions.capture_set == frozenset()

    def test_royal_blocked_at_start(self):
        state = BoardState.new_game()
        wk = state.get_piece('WK')
        # d1 is flanked by c1 and e1
        assert not legal_actions(wk, state)


class TestSteps:
    def test_ordinary_piece_steps_four_ways(self):
        state = board(Piece('W3', PieceType.T3, 1, (3, 3)))
        steps = legal_actions(state.pieces[0], state).step_set
        assert steps == {(2, 3), (4, 3), (3, 2), (3, 4)}

    def test_corner_steps(self):
        state = board(Piece('W3', PieceType.T3, 1, (0, 0)))
        steps = legal_actions(state.pieces[0], state).step_set
        assert steps == {(1, 0), (0, 1)}

    def test_royal_steps_horizontal_only(self):
        state = board(Piece('WK', PieceType.KING, 1, (3, 3)))
        steps = legal_actions(state.pieces[0], state).step_set
        assert steps == {(3, 2), (3, 4)}

    def test_royal_on_edge(self):
        state = board(Piece('WK', PieceType.KING, 1, (6, 0)))
        steps = legal_actions(state.pieces[0], state).step_set
        assert steps == {(6, 1)}

    def test_steps_never_onto_occupied_cells(self):
        state = board(
            Piece('W3', PieceType.T3, 1, (3, 3)),
            Piece('W1', PieceType.T1, 1, (2, 3)),
            Piece('B1', PieceType.T1, 2, (4, 3)),
        )
        steps = legal_actions(state.pieces[0], state).step_set
        assert steps == {(3, 2), (3, 4)}

    def test_royal_never_captures(self):
        state = board(
            Piece('WK', PieceType.KING, 1, (3, 3)),
            Piece('B1', PieceType.T1, 2, (3, 4)),
            Piece('B2', PieceType.T2, 2, (1, 2)),
            Piece('B3', PieceType.T3, 2, (3, 5)),
        )
        actions = legal_actions(state.pieces[0], state)
        assert actions.captures == ()
        assert actions.step_set == {(3, 2)}


class TestCaptures:
    def test_t3_captures_two_ahead(self):
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('BX', PieceType.T1, 2, (5, 3)),
        )
        captures = legal_actions(state.pieces[0], state).capture_set
        assert (5, 3) in captures
        assert (1, 3) not in captures

    def test_t3_captures_both_sides_when_occupied(self):
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('BX', PieceType.T1, 2, (5, 3)),
            Piece('BY', PieceType.T2, 2, (1, 3)),
        )
        captures = legal_actions(state.pieces[0], state).capture_set
        assert captures == {(5, 3), (1, 3)}

    def test_no_capture_of_own_piece(self):
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('A1', PieceType.T1, 1, (5, 3)),
        )
        assert legal_actions(state.pieces[0], state).captures == ()

    def test_jump_ignores_intermediate_cells(self):
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('A1', PieceType.T1, 1, (4, 3)),
            Piece('BX', PieceType.T1, 2, (5, 3)),
        )
        assert legal_actions(state.pieces[0], state).captures == ((5, 3),)

    def test_t1_from_corner(self):
        state = board(
            Piece('W1', PieceType.T1, 1, (0, 0)),
            Piece('B1', PieceType.T1, 2, (4, 0)),
            Piece('B2', PieceType.T2, 2, (0, 4)),
        )
        assert legal_actions(state.pieces[0], state).capture_set == {(4, 0), (0, 4)}

    def test_t1_has_no_reach_from_center(self):
        """Distance 4 from the center cell leaves the 7x7 board in every direction."""
        state = board(
            Piece('W1', PieceType.T1, 1, (3, 3)),
            Piece('B1', PieceType.T1, 2, (3, 0)),
        )
        assert legal_actions(state.pieces[0], state).captures == ()

    @pytest.mark.parametrize("kind,expected", [
        (PieceType.T2, 8),
        (PieceType.T3, 4),
        (PieceType.T4, 4),
        (PieceType.T5, 8),
    ])
    def test_full_pattern_from_center(self, kind, expected):
        mover = Piece('W', kind, 1, (3, 3))
        targets = [
            Piece(f'B{i}', PieceType.T1, 2, (3 + dr, 3 + dc))
            for i, (dr, dc) in enumerate(capture_offsets(kind))
        ]
        state = board(mover, *targets)
        assert len(legal_actions(mover, state).captures) == expected

    @pytest.mark.parametrize("kind", [k for k in PieceType if not k.is_royal])
    def test_pattern_size_minus_edge_cutoffs(self, kind):
        """From any cell, captures = offsets that stay on the board (all targets filled)."""
        for row in range(BOARD_SIZE):
            for col in range(BOARD_SIZE):
                mover = Piece('W', kind, 1, (row, col))
                in_bounds = [
                    (row + dr, col + dc) for dr, dc in capture_offsets(kind)
                    if is_valid_pos(row + dr, col + dc)
                ]
                targets = [Piece(f'B{i}', PieceType.T1, 2, pos) for i, pos in enumerate(in_bounds)]
                state = board(mover, *targets)
                captures = legal_actions(mover, state).captures
                assert len(captures) == len(in_bounds)
                assert set(captures) == set(in_bounds)

    def test_steps_and_captures_offered_together(self):
        """Capture is never forced: the step options stay available."""
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('BX', PieceType.T1, 2, (5, 3)),
        )
        actions = legal_actions(state.pieces[0], state)
        assert actions.captures == ((5, 3),)
        assert len(actions.steps) == 4


class TestAllActions:
    def test_pooled_in_piece_order(self):
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('BX', PieceType.T1, 2, (5, 3)),
            Piece('AK', PieceType.KING, 1, (6, 0)),
        )
        actions = get_all_actions(state)
        keys = [a.piece_key for a in actions]
        assert keys == ['A3'] * 5 + ['AK']
        # Steps before captures for a piece
        assert actions[4] == Action('A3', (3, 3), (5, 3), 'BX')
        assert all(not a.is_capture for a in actions[:4])

    def test_only_side_to_move(self):
        state = BoardState.new_game()
        assert all(a.piece_key.startswith('W') for a in get_all_actions(state))
        assert all(a.piece_key.startswith('B') for a in get_all_actions(state, player=2))

    def test_has_any_action(self):
        state = BoardState.new_game()
        assert MoveGenerator.has_any_action(state)
        blocked = board(
            Piece('WK', PieceType.KING, 1, (6, 0)),
            Piece('W3', PieceType.T3, 1, (6, 1)),
            Piece('B1', PieceType.T1, 2, (5, 1)),
            Piece('B4', PieceType.T4, 2, (6, 2)),
        )
        assert not MoveGenerator.has_any_action(blocked)
        assert get_all_actions(blocked) == []


class TestApplyAction:
    def test_step_relocates_and_flips_side(self):
        state = BoardState.new_game()
        action = find_action(state, (5, 4), (4, 4))
        new_state = apply_action(state, action)

        assert new_state.current_player == 2
        assert new_state.piece_at((4, 4)).key == 'W2'
        assert new_state.piece_at((5, 4)) is None
        # Predecessor untouched
        assert state.piece_at((5, 4)).key == 'W2'

    def test_capture_removes_victim(self):
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('BX', PieceType.T1, 2, (5, 3)),
            Piece('BK', PieceType.KING, 2, (0, 0)),
        )
        action = find_action(state, (3, 3), (5, 3))
        assert action.captured_key == 'BX'

        new_state = apply_action(state, action)
        assert new_state.get_piece('BX') is None
        assert new_state.piece_at((5, 3)).key == 'A3'
        assert len(new_state.pieces) == 2

    def test_illegal_destination_raises(self):
        state = BoardState.new_game()
        with pytest.raises(IllegalActionError):
            find_action(state, (5, 4), (2, 4))
        with pytest.raises(IllegalActionError):
            apply_action(state, Action('W2', (5, 4), (2, 4)))

    def test_wrong_side_raises(self):
        state = BoardState.new_game()
        with pytest.raises(IllegalActionError):
            find_action(state, (1, 4), (2, 4))

    def test_empty_origin_raises(self):
        state = BoardState.new_game()
        with pytest.raises(IllegalActionError):
            find_action(state, (3, 3), (3, 4))

    def test_stale_origin_raises(self):
        state = BoardState.new_game()
        with pytest.raises(IllegalActionError):
            apply_action(state, Action('W2', (4, 4), (3, 4)))

    def test_capture_key_mismatch_raises(self):
        state = board(
            Piece('A3', PieceType.T3, 1, (3, 3)),
            Piece('BX', PieceType.T1, 2, (5, 3)),
        )
        with pytest.raises(IllegalActionError):
            apply_action(state, Action('A3', (3, 3), (5, 3), None))


class TestRandomPlayouts:
    def test_invariants_hold_over_random_games(self):
        """Legal actions stay on the board, steps land on empty cells, keys survive."""
        rng = np.random.default_rng(7)
        for _ in range(10):
            game = Game.new_game()
            while not game.is_over and game.ply < 120:
                state = game.state
                for piece in state.pieces:
                    actions = legal_actions(piece, state)
                    for pos in actions.steps:
                        assert is_valid_pos(*pos)
                        assert state.piece_at(pos) is None
                    for pos in actions.captures:
                        assert is_valid_pos(*pos)
                        assert state.piece_at(pos).player != piece.player

                options = game.all_actions()
                action = options[int(rng.integers(len(options)))]
                game.apply(action)

                moved = game.state.get_piece(action.piece_key)
                assert moved is not None
                assert moved.pos == action.destination
                cells = [p.pos for p in game.state.pieces]
                assert len(cells) == len(set(cells))

    def test_successor_matches_apply(self):
        state = BoardState.new_game()
        for action in get_all_actions(state):
            assert successor(state, action) == apply_action(state, action)
