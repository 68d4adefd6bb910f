import pytest

import benchmark
from chokudai_engine import ChokudaiSearchStrategy, GreedyStrategy, RandomStrategy, SearchParams
from maze_logic import MazeConfig, MazeState


SMALL = MazeConfig(height=3, width=4, end_turn=4)


def test_play_game_runs_to_the_final_turn() -> None:
    state = MazeState.random(SMALL, seed=9)
    score = benchmark.play_game(GreedyStrategy(), state)
    assert state.is_terminal()
    assert state.turn == SMALL.end_turn
    assert score == state.game_score


def test_play_game_with_time_bank_uses_search_strategy() -> None:
    strategy = ChokudaiSearchStrategy()
    strategy.apply_config(SearchParams(beam_width=1, depth_limit=4, time_budget=0.001))
    state = MazeState.random(SMALL, seed=1)
    score = benchmark.play_game(strategy, state, time_bank=0.02)
    assert state.is_terminal()
    assert score >= 0


def test_average_score_is_deterministic_for_a_seed() -> None:
    first = benchmark.average_score(GreedyStrategy, 5, SMALL, seed=3)
    second = benchmark.average_score(GreedyStrategy, 5, SMALL, seed=3)
    assert first == second


def test_run_games_records_every_board() -> None:
    records = benchmark.run_games(lambda: RandomStrategy(seed=0), 3, SMALL, seed=7)
    assert len(records) == 3
    assert all(record.turns == SMALL.end_turn for record in records)
    assert all(record.board.startswith("turn:\t4") for record in records)


def test_run_games_rejects_non_positive_game_count() -> None:
    with pytest.raises(ValueError):
        benchmark.run_games(GreedyStrategy, 0, SMALL)


def test_exhaustive_search_never_loses_to_greedy_on_short_games() -> None:
    def search_factory():
        strategy = ChokudaiSearchStrategy()
        strategy.apply_config(SearchParams(beam_width=1, depth_limit=4, time_budget=5.0))
        return strategy

    for seed in range(5):
        greedy_state = MazeState.random(SMALL, seed=seed)
        search_state = MazeState.random(SMALL, seed=seed)
        greedy = benchmark.play_game(GreedyStrategy(), greedy_state)
        searched = benchmark.play_game(search_factory(), search_state)
        assert searched >= greedy


def test_main_prints_mean_score(capsys: pytest.CaptureFixture[str]) -> None:
    result = benchmark.main(
        ["--strategy", "greedy", "--games", "2", "--height", "3", "--width", "4", "--end-turn", "4"]
    )
    output = capsys.readouterr().out.strip().splitlines()
    assert output[-1] == f"Score:\t{result}"


def test_main_debug_traces_search(capsys: pytest.CaptureFixture[str]) -> None:
    benchmark.main(
        [
            "--strategy", "chokudai",
            "--games", "1",
            "--height", "3",
            "--width", "4",
            "--end-turn", "3",
            "--beam-width", "2",
            "--depth", "3",
            "--time-ms", "1",
            "--debug",
        ]
    )
    output = capsys.readouterr().out
    assert "perf chokudai" in output
    assert "game 1:" in output
    assert "Score:\t" in output


@pytest.mark.search_slow
def test_search_outscores_random_on_full_boards() -> None:
    config = MazeConfig()
    searched = benchmark.average_score(
        lambda: _configured(SearchParams(beam_width=1, depth_limit=100, time_budget=0.01)), 3, config
    )
    randomised = benchmark.average_score(lambda: RandomStrategy(seed=0), 3, config)
    assert searched > randomised


def _configured(params: SearchParams) -> ChokudaiSearchStrategy:
    strategy = ChokudaiSearchStrategy()
    strategy.apply_config(params)
    return strategy
