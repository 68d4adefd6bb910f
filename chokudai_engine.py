"""Time-bounded multi-depth best-first search ("chokudai search").

The search keeps one max-ordered frontier per depth and sweeps across all of
them repeatedly, expanding at most ``beam_width`` nodes per level per sweep.
Unlike a fixed-width beam search, nodes that miss the cut stay queued for later
sweeps, so the coverage keeps broadening until the wall-clock budget runs out.
The best node of the deepest non-empty level then decides which root action to
play.

The engine only talks to the game through :class:`SearchState`, so the maze
model in :mod:`maze_logic` is just one possible client.
"""

from __future__ import annotations

import heapq
import itertools
import math
import operator
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


Logger = Callable[[str], None]
Clock = Callable[[], float]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SearchError(Exception):
    """Base class for errors raised by the search engine."""


class ConfigurationError(SearchError, ValueError):
    """Invalid beam width, depth limit, time budget or frontier cap."""


class StuckStateError(ConfigurationError):
    """A non-terminal state offered no legal actions."""


class FrontierInvariantError(SearchError, RuntimeError):
    """The frontier bookkeeping reached a state that should be impossible."""


# ---------------------------------------------------------------------------
# State contract
# ---------------------------------------------------------------------------


class SearchState(Protocol):
    """Capabilities the driver needs from a game state.

    ``apply_action`` must return an independent state and leave the receiver
    untouched; ``legal_actions`` must be deterministic in order.
    """

    def clone(self) -> "SearchState":
        ...

    def is_terminal(self) -> bool:
        ...

    def legal_actions(self) -> Sequence[Any]:
        ...

    def apply_action(self, action: Any) -> "SearchState":
        ...

    def evaluate(self) -> Any:
        ...


# ---------------------------------------------------------------------------
# Configuration model
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SearchParams:
    beam_width: int = 1
    depth_limit: int = 100
    time_budget: float = 0.01
    frontier_cap: Optional[int] = None
    min_time: float = 0.0
    max_time: float = 10.0

    def clamp(self) -> "SearchParams":
        min_time = max(0.0, float(self.min_time))
        return replace(self, min_time=min_time, max_time=max(min_time, float(self.max_time)))


class ParamsRegistry:
    PRESETS: Dict[str, SearchParams] = {
        "balanced": SearchParams(),
        "fast": SearchParams(beam_width=1, depth_limit=30, time_budget=0.002),
        "wide": SearchParams(beam_width=3, depth_limit=100, time_budget=0.05, frontier_cap=20_000),
    }

    @classmethod
    def resolve(cls, preset: str) -> SearchParams:
        if preset not in cls.PRESETS:
            raise ValueError(f"Unknown search preset '{preset}'")
        return cls.PRESETS[preset].clamp()


def _as_index(name: str, value: Any) -> int:
    if isinstance(value, (bool, np.bool_)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return operator.index(value)
    except TypeError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def validate_params(beam_width: Any, depth_limit: Any, time_budget: Any, frontier_cap: Any = None) -> None:
    for name, value in (("beam_width", beam_width), ("depth_limit", depth_limit)):
        if _as_index(name, value) <= 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")
    if isinstance(time_budget, (bool, np.bool_)) or not isinstance(time_budget, (int, float, np.integer, np.floating)):
        raise ConfigurationError(f"time_budget must be a number of seconds, got {time_budget!r}")
    if not math.isfinite(time_budget):
        raise ConfigurationError(f"time_budget must be finite, got {time_budget}")
    if time_budget < 0:
        raise ConfigurationError(f"time_budget must not be negative, got {time_budget}")
    if frontier_cap is not None and _as_index("frontier_cap", frontier_cap) <= 0:
        raise ConfigurationError(f"frontier_cap must be a positive integer or None, got {frontier_cap!r}")


@dataclass
class TurnContext:
    turns_remaining: Optional[int] = None
    time_left: Optional[float] = None


class SearchLimits:
    def __init__(self, *, min_time: float, max_time: float, base_time: float) -> None:
        self.min_time = min_time
        self.max_time = max_time
        self.base_time = base_time

    def resolve_budget(
        self,
        turns_remaining: Optional[int] = None,
        time_left: Optional[float] = None,
        reporter: Optional["SearchReporter"] = None,
    ) -> float:
        if time_left is not None and turns_remaining:
            raw = max(time_left, 0.0) / max(1, turns_remaining)
            source = f"bank={time_left:.3f}s/{turns_remaining}turns"
        else:
            raw = self.base_time
            source = f"base={self.base_time:.3f}s"
        clamped = self._clamp(raw)
        if reporter:
            reporter.trace(f"budget calc: {source} raw={raw:.4f}s => {clamped:.4f}s")
        return clamped

    def _clamp(self, seconds: float) -> float:
        return _clamp(seconds, self.min_time, self.max_time)


def build_search_limits(params: SearchParams) -> SearchLimits:
    return SearchLimits(min_time=params.min_time, max_time=params.max_time, base_time=params.time_budget)


class SearchReporter:
    def __init__(self, *, logger: Logger):
        self._log = logger

    def trace(self, message: str) -> None:
        self._log(message)

    def perf_summary(self, label: str, stats: "SearchStats", time_spent: float) -> None:
        nps = int(stats.nodes / time_spent) if time_spent else 0
        segments = [
            f"perf {label} depth={stats.deepest_level if stats.deepest_level else '-'}",
            f"sweeps={stats.sweeps}",
            f"expansions={stats.expansions}",
            f"nodes={stats.nodes}",
            f"frontier={stats.frontier_size}",
            f"time={time_spent:.3f}s",
            f"nps={nps}",
        ]
        if stats.dropped:
            segments.append(f"dropped={stats.dropped}")
        if stats.exhausted:
            segments.append("exhausted")
        self._log(" ".join(segments))


# ---------------------------------------------------------------------------
# Search nodes and frontiers
# ---------------------------------------------------------------------------


@dataclass(slots=True, eq=False)
class SearchNode:
    """A state with its cached evaluation and the root action that led to it.

    Heap order puts the *better* node first: higher score, then lower root
    action rank, then earlier insertion.
    """

    state: SearchState
    score: Any
    first_action: Any = None
    first_rank: int = -1
    sequence: int = 0

    def __lt__(self, other: "SearchNode") -> bool:
        if self.score != other.score:
            return self.score > other.score
        if self.first_rank != other.first_rank:
            return self.first_rank < other.first_rank
        return self.sequence < other.sequence


class FrontierSet:
    """``depth_limit + 1`` independent priority queues indexed by depth."""

    def __init__(self, depth_limit: int, *, cap: Optional[int] = None) -> None:
        self.depth_limit = depth_limit
        self.cap = cap
        self._levels: List[List[SearchNode]] = [[] for _ in range(depth_limit + 1)]
        self._counter = itertools.count()

    def push(self, depth: int, node: SearchNode) -> None:
        node.sequence = next(self._counter)
        heapq.heappush(self._levels[depth], node)

    def peek(self, depth: int) -> Optional[SearchNode]:
        level = self._levels[depth]
        return level[0] if level else None

    def pop(self, depth: int) -> SearchNode:
        level = self._levels[depth]
        if not level:
            raise FrontierInvariantError(f"pop from empty frontier at depth {depth}")
        return heapq.heappop(level)

    def size(self, depth: int) -> int:
        return len(self._levels[depth])

    def total_size(self) -> int:
        return sum(len(level) for level in self._levels)

    def nodes(self, depth: int) -> Iterator[SearchNode]:
        return iter(tuple(self._levels[depth]))

    def deepest_level(self) -> int:
        for depth in range(self.depth_limit, -1, -1):
            if self._levels[depth]:
                return depth
        return -1

    def enforce_cap(self, depth: int) -> int:
        """Trim ``depth`` to its ``cap`` best nodes and return how many were dropped."""

        level = self._levels[depth]
        if self.cap is None or len(level) <= self.cap:
            return 0
        dropped = len(level) - self.cap
        # nsmallest returns a sorted list, which already satisfies the heap property.
        self._levels[depth] = heapq.nsmallest(self.cap, level)
        return dropped

    def deepest_best(self) -> Optional[Tuple[int, SearchNode]]:
        for depth in range(self.depth_limit, 0, -1):
            node = self.peek(depth)
            if node is None:
                continue
            if node.first_action is None:
                raise FrontierInvariantError(f"node at depth {depth} carries no first action")
            return depth, node
        return None


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


@dataclass
class SearchStats:
    sweeps: int = 0
    expansions: int = 0
    nodes: int = 0
    dropped: int = 0
    deepest_level: int = 0
    frontier_size: int = 0
    exhausted: bool = False


@dataclass(slots=True)
class SearchOutcome:
    action: Any
    score: Any
    depth: int
    sweeps: int
    expansions: int
    nodes: int
    time_spent: float
    fallback: bool = False
    stats: SearchStats = field(default_factory=SearchStats)
    frontier: Optional[FrontierSet] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class _SearchState:
    __slots__ = ("root", "root_actions", "params", "frontier", "reporter", "stats")

    def __init__(
        self,
        *,
        root: SearchState,
        root_actions: List[Any],
        params: SearchParams,
        reporter: SearchReporter,
    ) -> None:
        self.root = root
        self.root_actions = root_actions
        self.params = params
        self.reporter = reporter
        self.frontier = FrontierSet(params.depth_limit, cap=params.frontier_cap)
        self.stats = SearchStats()
        seed = root.clone()
        self.frontier.push(0, SearchNode(seed, seed.evaluate()))


class ChokudaiSearchBackend:
    def __init__(self, *, clock: Clock = time.perf_counter) -> None:
        self.params: Optional[SearchParams] = None
        self._clock = clock

    def configure(self, params: SearchParams) -> None:
        validate_params(params.beam_width, params.depth_limit, params.time_budget, params.frontier_cap)
        self.params = params

    def search(
        self,
        root: SearchState,
        reporter: Optional[SearchReporter] = None,
        budget_seconds: Optional[float] = None,
    ) -> SearchOutcome:
        if self.params is None:
            raise RuntimeError("ChokudaiSearchBackend not configured")
        params = self.params
        budget = params.time_budget if budget_seconds is None else budget_seconds
        validate_params(params.beam_width, params.depth_limit, budget, params.frontier_cap)
        reporter = reporter or SearchReporter(logger=lambda *_: None)

        root_actions = list(root.legal_actions())
        if not root_actions and not root.is_terminal():
            raise StuckStateError("root state is not terminal but has no legal actions")

        state = _SearchState(root=root, root_actions=root_actions, params=params, reporter=reporter)
        stats = state.stats

        start = self._clock()
        while True:
            expanded = self._sweep(state)
            stats.sweeps += 1
            if self._clock() - start >= budget:
                break
            if expanded == 0:
                stats.exhausted = True
                break

        found = state.frontier.deepest_best()
        if found is None:
            action, score = self._one_ply_fallback(root, root_actions)
            depth = 0
            fallback = True
            reporter.trace("no expansion reached depth 1, falling back to one-ply lookahead")
        else:
            depth, node = found
            action, score = node.first_action, node.score
            fallback = False
        if action not in root_actions:
            raise FrontierInvariantError(f"search produced {action!r}, which is not a legal root action")

        elapsed = max(1e-9, self._clock() - start)
        stats.deepest_level = max(0, state.frontier.deepest_level())
        stats.frontier_size = state.frontier.total_size()
        reporter.perf_summary("chokudai", stats, elapsed)

        return SearchOutcome(
            action=action,
            score=score,
            depth=depth,
            sweeps=stats.sweeps,
            expansions=stats.expansions,
            nodes=stats.nodes,
            time_spent=elapsed,
            fallback=fallback,
            stats=stats,
            frontier=state.frontier,
            metadata={"budget": budget, "beam_width": params.beam_width, "depth_limit": params.depth_limit},
        )

    def _sweep(self, state: _SearchState) -> int:
        frontier = state.frontier
        stats = state.stats
        beam_width = state.params.beam_width
        expanded = 0
        for depth in range(state.params.depth_limit):
            for _ in range(beam_width):
                best = frontier.peek(depth)
                if best is None or best.state.is_terminal():
                    break
                node = frontier.pop(depth)
                expanded += 1
                for rank, action in enumerate(node.state.legal_actions()):
                    child = node.state.apply_action(action)
                    if depth == 0:
                        first_action, first_rank = action, rank
                    else:
                        first_action, first_rank = node.first_action, node.first_rank
                    frontier.push(depth + 1, SearchNode(child, child.evaluate(), first_action, first_rank))
                    stats.nodes += 1
            stats.dropped += frontier.enforce_cap(depth + 1)
        stats.expansions += expanded
        return expanded

    def _one_ply_fallback(self, root: SearchState, root_actions: List[Any]) -> Tuple[Any, Any]:
        if not root_actions:
            raise StuckStateError("root state offers no legal actions to fall back on")
        best_action = root_actions[0]
        best_score = root.apply_action(best_action).evaluate()
        for action in root_actions[1:]:
            score = root.apply_action(action).evaluate()
            if score > best_score:
                best_action, best_score = action, score
        return best_action, best_score


def chokudai_search(
    root: SearchState,
    beam_width: int,
    depth_limit: int,
    time_budget: float,
    *,
    frontier_cap: Optional[int] = None,
    reporter: Optional[SearchReporter] = None,
    clock: Clock = time.perf_counter,
) -> Any:
    """Return the root action recommended after ``time_budget`` seconds of search."""

    backend = ChokudaiSearchBackend(clock=clock)
    backend.configure(
        SearchParams(
            beam_width=beam_width,
            depth_limit=depth_limit,
            time_budget=time_budget,
            frontier_cap=frontier_cap,
        )
    )
    return backend.search(root, reporter).action


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class MoveStrategy(ABC):
    def __init__(self, *, name: Optional[str] = None):
        self.name = name or self.__class__.__name__

    @abstractmethod
    def choose_action(self, state: SearchState, context: Optional[TurnContext] = None) -> Any:
        ...

    def apply_config(self, config: Any) -> None:
        pass


class RandomStrategy(MoveStrategy):
    def __init__(self, *, seed: Optional[int] = None) -> None:
        super().__init__()
        self._rng = np.random.default_rng(seed)

    def choose_action(self, state: SearchState, context: Optional[TurnContext] = None) -> Any:
        actions = list(state.legal_actions())
        if not actions:
            raise StuckStateError("random strategy got a state without legal actions")
        return actions[int(self._rng.integers(len(actions)))]


class GreedyStrategy(MoveStrategy):
    def choose_action(self, state: SearchState, context: Optional[TurnContext] = None) -> Any:
        actions = list(state.legal_actions())
        if not actions:
            raise StuckStateError("greedy strategy got a state without legal actions")
        best_action = actions[0]
        best_score = state.apply_action(best_action).evaluate()
        for action in actions[1:]:
            score = state.apply_action(action).evaluate()
            if score > best_score:
                best_action, best_score = action, score
        return best_action


class ChokudaiSearchStrategy(MoveStrategy):
    def __init__(
        self,
        *,
        logger: Optional[Logger] = None,
        log_tag: str = "chokudai",
        clock: Clock = time.perf_counter,
    ) -> None:
        super().__init__()
        self.log_tag = log_tag
        self._logger = logger or (lambda *_: None)
        self._params: Optional[SearchParams] = None
        self._limits: Optional[SearchLimits] = None
        self._backend = ChokudaiSearchBackend(clock=clock)
        self.last_outcome: Optional[SearchOutcome] = None

    def apply_config(self, config: SearchParams) -> None:
        if not isinstance(config, SearchParams):
            raise TypeError("ChokudaiSearchStrategy.apply_config expects SearchParams")
        params = config.clamp()
        self._backend.configure(params)
        self._params = params
        self._limits = build_search_limits(params)

    def choose_action(self, state: SearchState, context: Optional[TurnContext] = None) -> Any:
        if self._params is None or self._limits is None:
            raise RuntimeError("ChokudaiSearchStrategy not configured")
        context = context or TurnContext()

        reporter = SearchReporter(logger=self._logger)
        budget = self._limits.resolve_budget(context.turns_remaining, context.time_left, reporter)
        self._logger(
            f"{self.log_tag}: width={self._params.beam_width} depth={self._params.depth_limit} "
            f"budget={budget:.4f}s"
        )

        outcome = self._backend.search(state, reporter, budget)
        self.last_outcome = replace(outcome, frontier=None)
        self._logger(
            f"{self.log_tag}: action={outcome.action!r} score={outcome.score} depth={outcome.depth} "
            f"sweeps={outcome.sweeps} time={outcome.time_spent:.3f}s"
            + (" fallback" if outcome.fallback else "")
        )
        return outcome.action


__all__ = [
    "ChokudaiSearchBackend",
    "ChokudaiSearchStrategy",
    "ConfigurationError",
    "FrontierInvariantError",
    "FrontierSet",
    "GreedyStrategy",
    "MoveStrategy",
    "ParamsRegistry",
    "RandomStrategy",
    "SearchError",
    "SearchLimits",
    "SearchNode",
    "SearchOutcome",
    "SearchParams",
    "SearchReporter",
    "SearchState",
    "SearchStats",
    "StuckStateError",
    "TurnContext",
    "build_search_limits",
    "chokudai_search",
    "validate_params",
]
