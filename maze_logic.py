"""Point-collecting maze used as the search engine's state model.

A single agent walks on a fixed-size grid for a bounded number of turns. Every
cell holds a non-negative point value which is added to the score the first
time the agent steps on it and zeroed afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import List, NamedTuple, Optional, Tuple

import numpy as np


POINT_LIMIT = 10


@dataclass(slots=True, frozen=True)
class MazeConfig:
    height: int = 30
    width: int = 30
    end_turn: int = 100

    def __post_init__(self) -> None:
        for name in ("height", "width", "end_turn"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"MazeConfig.{name} must be a positive integer, got {value!r}")


class Action(IntEnum):
    RIGHT = 0
    LEFT = 1
    DOWN = 2
    UP = 3

    @property
    def delta(self) -> Tuple[int, int]:
        return _DELTAS[self]


_DELTAS = {
    Action.RIGHT: (0, 1),
    Action.LEFT: (0, -1),
    Action.DOWN: (1, 0),
    Action.UP: (-1, 0),
}


class Coord(NamedTuple):
    row: int
    col: int

    def step(self, action: Action) -> "Coord":
        d_row, d_col = action.delta
        return Coord(self.row + d_row, self.col + d_col)


class MazeState:
    """Grid, agent position, turn counter and accumulated score.

    ``apply_action`` never touches the receiver; ``advance`` is the in-place
    transition and is only meant to be called on a private copy.
    """

    __slots__ = ("config", "points", "character", "turn", "game_score")

    def __init__(
        self,
        config: MazeConfig,
        points: np.ndarray,
        character: Coord,
        *,
        turn: int = 0,
        game_score: int = 0,
    ) -> None:
        self.config = config
        self.points = points
        self.character = character
        self.turn = turn
        self.game_score = game_score

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def random(cls, config: Optional[MazeConfig] = None, seed: Optional[int] = None) -> "MazeState":
        config = config or MazeConfig()
        rng = np.random.default_rng(seed)
        row = int(rng.integers(config.height))
        col = int(rng.integers(config.width))
        points = rng.integers(0, POINT_LIMIT, size=(config.height, config.width), dtype=np.int32)
        points[row, col] = 0
        return cls(config, points, Coord(row, col))

    @classmethod
    def from_points(
        cls,
        points,
        character: Tuple[int, int],
        end_turn: int,
        *,
        turn: int = 0,
        game_score: int = 0,
    ) -> "MazeState":
        grid = np.array(points, dtype=np.int32)
        if grid.ndim != 2 or grid.size == 0:
            raise ValueError(f"points must be a non-empty 2-D grid, got shape {grid.shape}")
        if (grid < 0).any():
            raise ValueError("points must be non-negative")
        config = MazeConfig(height=int(grid.shape[0]), width=int(grid.shape[1]), end_turn=end_turn)
        coord = Coord(int(character[0]), int(character[1]))
        if not _in_bounds(config, coord):
            raise ValueError(f"character {tuple(coord)} lies outside a {config.height}x{config.width} grid")
        if not 0 <= turn <= config.end_turn:
            raise ValueError(f"turn must be within 0..{config.end_turn}, got {turn}")
        grid[coord.row, coord.col] = 0
        return cls(config, grid, coord, turn=turn, game_score=game_score)

    def clone(self) -> "MazeState":
        return MazeState(
            self.config,
            self.points.copy(),
            self.character,
            turn=self.turn,
            game_score=self.game_score,
        )

    # ------------------------------------------------------------------
    # Game rules
    # ------------------------------------------------------------------
    def is_terminal(self) -> bool:
        return self.turn == self.config.end_turn

    def legal_actions(self) -> List[Action]:
        return [action for action in Action if _in_bounds(self.config, self.character.step(action))]

    def advance(self, action: Action) -> None:
        target = self.character.step(action)
        if not _in_bounds(self.config, target):
            raise ValueError(f"action {Action(action).name} leaves the grid from {tuple(self.character)}")
        self.character = target
        value = int(self.points[target.row, target.col])
        if value > 0:
            self.game_score += value
            self.points[target.row, target.col] = 0
        self.turn += 1

    def apply_action(self, action: Action) -> "MazeState":
        child = self.clone()
        child.advance(action)
        return child

    def evaluate(self) -> int:
        return self.game_score

    def __str__(self) -> str:
        rows = []
        for row in range(self.config.height):
            cells = []
            for col in range(self.config.width):
                if (row, col) == self.character:
                    cells.append("@")
                elif self.points[row, col] > 0:
                    cells.append(str(int(self.points[row, col])))
                else:
                    cells.append(".")
            rows.append("".join(cells))
        return f"turn:\t{self.turn}\nscore:\t{self.game_score}\n" + "\n".join(rows)

    def __repr__(self) -> str:
        return (
            f"MazeState(turn={self.turn}, score={self.game_score}, "
            f"character={tuple(self.character)}, size={self.config.height}x{self.config.width})"
        )


def _in_bounds(config: MazeConfig, coord: Coord) -> bool:
    return 0 <= coord.row < config.height and 0 <= coord.col < config.width


def is_valid_action(state: MazeState, action: Action) -> bool:
    return action in state.legal_actions()


def remaining_turns(state: MazeState) -> int:
    return state.config.end_turn - state.turn


__all__ = ["Action", "Coord", "MazeConfig", "MazeState", "is_valid_action", "remaining_turns"]
