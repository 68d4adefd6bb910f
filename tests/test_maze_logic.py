import numpy as np
import pytest

from maze_logic import Action, Coord, MazeConfig, MazeState, is_valid_action, remaining_turns


POINTS = [
    [2, 5, 8, 1],
    [9, 0, 5, 8],
    [6, 9, 2, 5],
]


def make_state(character=(1, 1), end_turn: int = 4) -> MazeState:
    return MazeState.from_points(POINTS, character, end_turn)


def test_legal_actions_follow_bounds_in_fixed_order() -> None:
    assert make_state((0, 0)).legal_actions() == [Action.RIGHT, Action.DOWN]
    assert make_state((2, 3)).legal_actions() == [Action.LEFT, Action.UP]
    assert make_state((1, 1)).legal_actions() == [Action.RIGHT, Action.LEFT, Action.DOWN, Action.UP]


def test_apply_action_leaves_parent_untouched() -> None:
    state = make_state()
    right = state.apply_action(Action.RIGHT)
    down = state.apply_action(Action.DOWN)

    assert state.turn == 0
    assert state.game_score == 0
    assert state.character == Coord(1, 1)
    assert state.points[1, 2] == 5

    assert right.character == Coord(1, 2)
    assert right.game_score == 5
    assert right.points[1, 2] == 0
    assert right.turn == 1

    assert down.character == Coord(2, 1)
    assert down.game_score == 9
    assert down.points[1, 2] == 5


def test_cells_are_collected_at_most_once() -> None:
    state = make_state()
    for action in (Action.RIGHT, Action.LEFT, Action.RIGHT):
        state.advance(action)
    assert state.game_score == 5
    assert state.turn == 3


def test_start_cell_is_zeroed() -> None:
    state = MazeState.from_points([[4, 1], [1, 1]], (0, 0), 2)
    assert state.points[0, 0] == 0
    state.advance(Action.RIGHT)
    state.advance(Action.LEFT)
    assert state.game_score == 1


def test_terminal_exactly_at_end_turn() -> None:
    state = make_state(end_turn=2)
    assert not state.is_terminal()
    assert remaining_turns(state) == 2
    state.advance(Action.RIGHT)
    assert not state.is_terminal()
    state.advance(Action.DOWN)
    assert state.is_terminal()
    assert remaining_turns(state) == 0


def test_advance_rejects_moves_off_the_grid() -> None:
    state = make_state((0, 0))
    with pytest.raises(ValueError):
        state.advance(Action.UP)
    assert state.turn == 0
    assert not is_valid_action(state, Action.LEFT)
    assert is_valid_action(state, Action.DOWN)


def test_clone_copies_the_grid() -> None:
    state = make_state()
    clone = state.clone()
    clone.advance(Action.DOWN)
    assert state.points[2, 1] == 9
    assert clone.points[2, 1] == 0
    assert clone.points is not state.points


def test_random_boards_are_reproducible() -> None:
    config = MazeConfig(height=5, width=7, end_turn=10)
    first = MazeState.random(config, seed=42)
    second = MazeState.random(config, seed=42)

    assert np.array_equal(first.points, second.points)
    assert first.character == second.character
    assert first.points.shape == (5, 7)
    assert first.points[first.character.row, first.character.col] == 0
    assert first.points.min() >= 0
    assert first.points.max() < 10
    assert first.turn == 0 and first.game_score == 0


def test_from_points_validation() -> None:
    with pytest.raises(ValueError):
        MazeState.from_points([1, 2, 3], (0, 0), 2)
    with pytest.raises(ValueError):
        MazeState.from_points([[1, -2]], (0, 0), 2)
    with pytest.raises(ValueError):
        MazeState.from_points([[1, 2]], (1, 0), 2)
    with pytest.raises(ValueError):
        MazeState.from_points([[1, 2]], (0, 0), 2, turn=3)


def test_maze_config_rejects_non_positive_sizes() -> None:
    with pytest.raises(ValueError):
        MazeConfig(height=0)
    with pytest.raises(ValueError):
        MazeConfig(end_turn=-1)
    with pytest.raises(ValueError):
        MazeConfig(height=True)
    with pytest.raises(ValueError):
        MazeConfig(width=False)


def test_str_renders_agent_points_and_empty_cells() -> None:
    state = MazeState.from_points([[0, 3], [0, 0]], (0, 0), 2)
    assert str(state) == "turn:\t0\nscore:\t0\n@3\n.."
    state.advance(Action.RIGHT)
    assert str(state) == "turn:\t1\nscore:\t3\n.@\n.."
