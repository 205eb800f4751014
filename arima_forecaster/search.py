"""Automatic ARIMA order selection."""

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import product
from typing import List, Optional, Tuple

from .estimator import ParameterEstimator
from .exceptions import EstimationFailure, InsufficientDataError, SearchExhaustedError
from .model import FittedModel, ModelSpec

logger = logging.getLogger(__name__)

SCORE_ABS_TOL = 1e-6
SCORE_REL_TOL = 1e-9


@dataclass
class SearchResult:
    best: FittedModel
    criterion: str
    leaderboard: List[Tuple[ModelSpec, float]] = field(default_factory=list)
    failed: List[ModelSpec] = field(default_factory=list)
    n_fitted: int = 0
    iterations: int = 0

    @property
    def spec(self):
        return self.best.spec

    @property
    def score(self):
        return self.best.score(self.criterion)


def _tie_key(spec):
    return (spec.total_order, spec.p, int(spec.constant))


def is_better(candidate, incumbent, criterion="aicc"):
    """Lower score wins; scores equal within tolerance fall back to simpler orders."""
    if incumbent is None:
        return True
    a, b = candidate.score(criterion), incumbent.score(criterion)
    if math.isclose(a, b, rel_tol=SCORE_REL_TOL, abs_tol=SCORE_ABS_TOL):
        return _tie_key(candidate.spec) < _tie_key(incumbent.spec)
    return a < b


class ModelOrderSearch:
    """Search (p, q[, P, Q]) for a fixed differencing and rank by criterion.

    Candidates proposed in the same iteration are independent and are fitted
    on a thread pool; the best one is picked after all of them return.
    """

    def __init__(
        self,
        max_p=5,
        max_q=5,
        max_P=2,
        max_Q=2,
        max_order=5,
        seasonal=False,
        mode="stepwise",
        criterion="aicc",
        max_steps=94,
        allow_constant=True,
        leaderboard_size=5,
        max_workers=None,
        estimator=None,
    ):
        self.max_p = max_p
        self.max_q = max_q
        self.max_P = max_P
        self.max_Q = max_Q
        self.max_order = max_order
        self.seasonal = seasonal
        self.mode = mode
        self.criterion = criterion
        self.max_steps = max_steps
        self.allow_constant = allow_constant
        self.leaderboard_size = leaderboard_size
        self.max_workers = max_workers or min(4, os.cpu_count() or 1)
        self.estimator = estimator or ParameterEstimator()

    @classmethod
    def from_config(cls, config):
        return cls(
            max_p=config.max_p,
            max_q=config.max_q,
            max_P=config.max_P,
            max_Q=config.max_Q,
            max_order=config.max_order,
            seasonal=config.seasonal_period > 1,
            mode=config.search_mode,
            criterion=config.criterion,
            max_steps=config.max_steps,
            allow_constant=config.allow_constant,
            leaderboard_size=config.leaderboard_size,
            max_workers=config.max_workers,
            estimator=ParameterEstimator(max_iter=config.max_iter),
        )

    def search(self, data):
        """Return the best :class:`SearchResult` for a DifferencedSeries."""
        self._state = _SearchState(self.criterion)
        self._data = data
        self._season = data.period if self.seasonal and data.period > 1 else 1
        if self.mode == "exhaustive":
            self._fit_batch(self._grid())
            iterations = 1
        else:
            iterations = self._stepwise()
        return self._finish(iterations)

    # ------------------------------------------------------------------
    # candidate generation
    # ------------------------------------------------------------------
    def _constant_allowed(self):
        return self.allow_constant and self._data.d + self._data.D <= 1

    def _make(self, p, q, P=0, Q=0, constant=False):
        if p < 0 or q < 0 or P < 0 or Q < 0:
            return None
        if p > self.max_p or q > self.max_q or P > self.max_P or Q > self.max_Q:
            return None
        if p + q + P + Q > self.max_order:
            return None
        if constant and not self._constant_allowed():
            return None
        seasonal = self._season > 1
        return ModelSpec(
            p=p,
            d=self._data.d,
            q=q,
            P=P if seasonal else 0,
            D=self._data.D,
            Q=Q if seasonal else 0,
            period=self._data.period if seasonal or self._data.D else 1,
            constant=constant,
        )

    def _seeds(self):
        const = self._constant_allowed()
        if self._season > 1:
            pairs = [((2, 2), (1, 1)), ((0, 0), (0, 0)), ((1, 0), (1, 0)), ((0, 1), (0, 1))]
        else:
            pairs = [((2, 2), (0, 0)), ((0, 0), (0, 0)), ((1, 0), (0, 0)), ((0, 1), (0, 0))]
        seeds = [self._make(p, q, P, Q, const) for (p, q), (P, Q) in pairs]
        if const:
            seeds.append(self._make(0, 0, 0, 0, False))
        return _unique(s for s in seeds if s is not None)

    def _neighbors(self, spec):
        p, q, P, Q, c = spec.p, spec.q, spec.P, spec.Q, spec.constant
        moves = [
            (p - 1, q, P, Q, c), (p + 1, q, P, Q, c),
            (p, q - 1, P, Q, c), (p, q + 1, P, Q, c),
            (p - 1, q - 1, P, Q, c), (p + 1, q + 1, P, Q, c),
        ]
        if self._season > 1:
            moves += [
                (p, q, P - 1, Q, c), (p, q, P + 1, Q, c),
                (p, q, P, Q - 1, c), (p, q, P, Q + 1, c),
                (p, q, P - 1, Q - 1, c), (p, q, P + 1, Q + 1, c),
            ]
        moves.append((p, q, P, Q, not c))
        return _unique(s for s in (self._make(*m) for m in moves) if s is not None)

    def _grid(self):
        seasonal_range = (
            product(range(self.max_P + 1), range(self.max_Q + 1)) if self._season > 1 else [(0, 0)]
        )
        constants = [False, True] if self._constant_allowed() else [False]
        specs = [
            self._make(p, q, P, Q, c)
            for (P, Q) in seasonal_range
            for p in range(self.max_p + 1)
            for q in range(self.max_q + 1)
            for c in constants
        ]
        return sorted(s for s in specs if s is not None)

    # ------------------------------------------------------------------
    # evaluation
    # ------------------------------------------------------------------
    def _stepwise(self):
        state = self._state
        self._fit_batch(self._seeds())
        iterations = 0
        while state.best is not None and iterations < self.max_steps:
            iterations += 1
            incumbent = state.best
            worklist = [s for s in self._neighbors(incumbent.spec) if s not in state.visited]
            if not worklist:
                break
            self._fit_batch(worklist)
            if state.best is incumbent:
                break
            logger.debug("Stepwise move: %s -> %s", incumbent.spec.label, state.best.spec.label)
        return iterations

    def _fit_one(self, spec):
        try:
            return self.estimator.fit(self._data, spec)
        except (EstimationFailure, InsufficientDataError) as exc:
            logger.debug("Candidate %s rejected: %s", spec.label, exc)
            return exc

    def _fit_batch(self, specs):
        specs = [s for s in specs if s not in self._state.visited]
        self._state.visited.update(specs)
        if not specs:
            return
        if self.max_workers > 1 and len(specs) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(specs))) as pool:
                outcomes = list(pool.map(self._fit_one, specs))
        else:
            outcomes = [self._fit_one(s) for s in specs]
        # reduction in proposal order keeps the result independent of thread timing
        for spec, outcome in zip(specs, outcomes):
            self._state.record(spec, outcome)

    def _finish(self, iterations):
        state = self._state
        if state.best is None:
            raise SearchExhaustedError(
                "no candidate order admitted a valid fit",
                {
                    "d": self._data.d,
                    "D": self._data.D,
                    "tried": ", ".join(s.label for s in state.failed) or "none",
                },
            )
        ranked = sorted(state.scores.items(), key=lambda kv: (kv[1], _tie_key(kv[0])))
        logger.info(
            "Selected %s (%s=%.3f) after %d fits, %d failures",
            state.best.spec.label,
            self.criterion,
            state.best.score(self.criterion),
            len(state.scores),
            len(state.failed),
        )
        return SearchResult(
            best=state.best,
            criterion=self.criterion,
            leaderboard=ranked[: self.leaderboard_size],
            failed=list(state.failed),
            n_fitted=len(state.scores),
            iterations=iterations,
        )


class _SearchState:
    def __init__(self, criterion):
        self.criterion = criterion
        self.visited = set()
        self.scores = {}
        self.failed = []
        self.best: Optional[FittedModel] = None

    def record(self, spec, outcome):
        if isinstance(outcome, Exception):
            self.failed.append(spec)
            return
        score = outcome.score(self.criterion)
        if not math.isfinite(score):
            self.failed.append(spec)
            return
        self.scores[spec] = score
        if is_better(outcome, self.best, self.criterion):
            self.best = outcome


def _unique(specs):
    seen = []
    for spec in specs:
        if spec not in seen:
            seen.append(spec)
    return seen
