#!/usr/bin/env python3
"""Score-averaging harness comparing maze strategies over seeded boards."""

from __future__ import annotations

import argparse
import time
from dataclasses import dataclass, replace
from statistics import mean
from typing import Callable, List, Optional, Sequence

import numpy as np

from chokudai_engine import (
    ChokudaiSearchStrategy,
    GreedyStrategy,
    MoveStrategy,
    ParamsRegistry,
    RandomStrategy,
    TurnContext,
)
from maze_logic import MazeConfig, MazeState, remaining_turns
from utils import debug_text, highlight_agent, info_text


StrategyFactory = Callable[[], MoveStrategy]


class SmartFormatter(
    argparse.ArgumentDefaultsHelpFormatter, argparse.RawDescriptionHelpFormatter
):
    """Formatter that shows defaults while preserving custom epilog layout."""


@dataclass(frozen=True)
class GameRecord:
    seed: int
    score: int
    turns: int
    seconds: float
    board: str = ""


def play_game(
    strategy: MoveStrategy,
    state: MazeState,
    *,
    time_bank: Optional[float] = None,
) -> int:
    """Play ``state`` to its final turn and return the collected score.

    ``state`` is advanced in place. ``time_bank`` is a total number of seconds
    shared by all remaining turns; strategies that search split it evenly.
    """

    bank = time_bank
    while not state.is_terminal():
        context = TurnContext(turns_remaining=remaining_turns(state), time_left=bank)
        started = time.perf_counter()
        action = strategy.choose_action(state, context)
        if bank is not None:
            bank = max(0.0, bank - (time.perf_counter() - started))
        state.advance(action)
    return state.game_score


def run_games(
    strategy_factory: StrategyFactory,
    games: int,
    config: MazeConfig,
    *,
    seed: int = 0,
    time_bank: Optional[float] = None,
) -> List[GameRecord]:
    if games <= 0:
        raise ValueError(f"games must be positive, got {games}")
    seeds = np.random.default_rng(seed).integers(0, 2**63 - 1, size=games)
    records: List[GameRecord] = []
    for board_seed in seeds:
        state = MazeState.random(config, seed=int(board_seed))
        started = time.perf_counter()
        score = play_game(strategy_factory(), state, time_bank=time_bank)
        records.append(
            GameRecord(
                seed=int(board_seed),
                score=score,
                turns=state.turn,
                seconds=time.perf_counter() - started,
                board=str(state),
            )
        )
    return records


def average_score(
    strategy_factory: StrategyFactory,
    games: int,
    config: MazeConfig,
    *,
    seed: int = 0,
    time_bank: Optional[float] = None,
) -> float:
    records = run_games(strategy_factory, games, config, seed=seed, time_bank=time_bank)
    return mean(record.score for record in records)


def build_strategy_factory(args: argparse.Namespace, logger: Callable[[str], None]) -> StrategyFactory:
    if args.strategy == "random":
        rng = np.random.default_rng(args.seed)
        return lambda: RandomStrategy(seed=int(rng.integers(0, 2**63 - 1)))
    if args.strategy == "greedy":
        return GreedyStrategy

    params = ParamsRegistry.resolve(args.preset)
    overrides = {}
    if args.beam_width is not None:
        overrides["beam_width"] = args.beam_width
    if args.depth is not None:
        overrides["depth_limit"] = args.depth
    if args.time_ms is not None:
        overrides["time_budget"] = args.time_ms / 1000.0
    if overrides:
        params = replace(params, **overrides).clamp()

    def factory() -> MoveStrategy:
        strategy = ChokudaiSearchStrategy(logger=logger)
        strategy.apply_config(params)
        return strategy

    return factory


def build_parser() -> argparse.ArgumentParser:
    defaults = MazeConfig()
    parser = argparse.ArgumentParser(
        description="Average the score of a maze strategy over seeded boards",
        formatter_class=SmartFormatter,
    )
    parser.add_argument("--strategy", choices=("random", "greedy", "chokudai"), default="chokudai")
    parser.add_argument("--games", type=int, default=100, help="Number of boards to play")
    parser.add_argument("--seed", type=int, default=0, help="Seed for the board stream")
    parser.add_argument("--height", type=int, default=defaults.height)
    parser.add_argument("--width", type=int, default=defaults.width)
    parser.add_argument("--end-turn", type=int, default=defaults.end_turn)
    parser.add_argument("--preset", choices=sorted(ParamsRegistry.PRESETS), default="balanced")
    parser.add_argument("--beam-width", type=int, default=None, help="Override the preset beam width")
    parser.add_argument("--depth", type=int, default=None, help="Override the preset depth limit")
    parser.add_argument("--time-ms", type=float, default=None, help="Override the per-turn budget (ms)")
    parser.add_argument("--time-bank-ms", type=float, default=None, help="Total per-game time bank (ms)")
    parser.add_argument("--debug", action="store_true", help="Trace every search and show final boards")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> float:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logger = (lambda message: print(debug_text(message))) if args.debug else (lambda *_: None)

    config = MazeConfig(height=args.height, width=args.width, end_turn=args.end_turn)
    factory = build_strategy_factory(args, logger)
    time_bank = args.time_bank_ms / 1000.0 if args.time_bank_ms is not None else None

    records = run_games(factory, args.games, config, seed=args.seed, time_bank=time_bank)
    if args.debug:
        for index, record in enumerate(records, 1):
            print(info_text(f"game {index}: seed={record.seed} score={record.score} time={record.seconds:.2f}s"))
        print(highlight_agent(records[-1].board))

    score_mean = mean(record.score for record in records)
    print(f"Score:\t{score_mean}")
    return score_mean


if __name__ == "__main__":
    main()
