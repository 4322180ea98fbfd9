"""
Tanh-Sinh Abscissa/Weight Table

This module owns the growable table of refinement levels used by the
integrator. Level n holds the samples at odd multiples of ``h = 2**-n``
below ``t_max`` (level 0 holds every unit step plus a boundary entry at
``t_max``), so each level only adds points between those of the previous
levels.

Each level stores:
- an abscissa row: ``x`` while ``t < t_crossover``, and the negative
  complement ``x - 1`` from the first-complement index onwards
- a weight row: ``dx/dt`` at the same transform parameters
- the first-complement index

Levels are computed once and memoized. Two initialisation strategies
exist: the generic one evaluates the row formula, the precomputed one
loads literal single-precision levels for narrow binary types.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Union

from . import _float32_table
from .numeric import RealType, get_real_type, uses_precomputed_table
from .rows import (
    abscissa_at_t,
    weight_at_t,
    abscissa_complement_at_t,
    t_from_abscissa_complement,
)

logger = logging.getLogger(__name__)

GENERIC_INITIAL_ROW_LENGTH = 7
PRECOMPUTED_INITIAL_ROW_LENGTH = 4


def _negative_complement_at_t(t, rt: RealType):
    return -abscissa_complement_at_t(t, rt)


class AbscissaTable:
    """Lazily extended cache of tanh-sinh refinement levels.

    Extension is serialised by a lock, so one table may be shared between
    threads. Committed rows are frozen and never recomputed.

    Args:
        real_type: Numeric type specification (see ``get_real_type``)
        max_refinements: Highest refinement level the table may hold
        initial_commit: Number of levels computed eagerly at construction
    """

    def __init__(self, real_type: Union[str, RealType, Any] = "float64",
                 max_refinements: int = 15,
                 initial_commit: int = 4) -> None:
        if max_refinements < 0:
            raise ValueError(f"max_refinements must be >= 0, got {max_refinements}")
        if initial_commit < 0:
            raise ValueError(f"initial_commit must be >= 0, got {initial_commit}")

        self.real_type = get_real_type(real_type)
        self._max_refinements = max_refinements
        self._lock = threading.Lock()
        self._abscissas: list = []
        self._weights: list = []
        self._first_complements: list[int] = []
        self._committed = -1

        self.precomputed = uses_precomputed_table(self.real_type)
        if self.precomputed:
            self._init_precomputed(initial_commit)
        else:
            self._init_generic(initial_commit)

    @property
    def t_max(self):
        return self._t_max

    @property
    def t_crossover(self):
        return self._t_crossover

    @property
    def initial_row_length(self) -> int:
        return self._initial_row_length

    @property
    def committed_refinements(self) -> int:
        """Highest level currently held in the table."""
        return self._committed

    @property
    def max_refinements(self) -> int:
        return self._max_refinements

    def _init_generic(self, initial_commit: int) -> None:
        rt = self.real_type
        self._initial_row_length = GENERIC_INITIAL_ROW_LENGTH
        self._t_max = rt.cast(self._initial_row_length)
        self._t_crossover = t_from_abscissa_complement(0.5, rt.working)

        # Level 0 samples every unit step from t = 0, plus t_max itself.
        h = self._t_max / self._initial_row_length
        grid = rt.positions(rt.zero, self._t_max, h)
        first_complement = rt.count_below(grid, self._t_crossover)
        boundary = [self._t_max]
        row = rt.concat(
            rt.apply(abscissa_at_t, grid[:first_complement]),
            rt.apply(_negative_complement_at_t, grid[first_complement:]),
        )
        row = rt.concat(row, rt.apply(_negative_complement_at_t, boundary))
        weights = rt.concat(rt.apply(weight_at_t, grid),
                            rt.apply(weight_at_t, boundary))
        self._commit(row, weights, first_complement)

        with self._lock:
            while self._committed < min(initial_commit, self._max_refinements):
                self._extend_locked()

    def _init_precomputed(self, initial_commit: int) -> None:
        rt = self.real_type
        self._initial_row_length = PRECOMPUTED_INITIAL_ROW_LENGTH
        self._t_max = rt.cast(self._initial_row_length)
        self._t_crossover = t_from_abscissa_complement(0.5, rt.working)

        for row, weights, first_complement in zip(_float32_table.ABSCISSAS,
                                                  _float32_table.WEIGHTS,
                                                  _float32_table.FIRST_COMPLEMENTS):
            self._commit(row, weights, first_complement)

        with self._lock:
            while self._committed < initial_commit and self._committed < self._max_refinements:
                self._extend_locked()
        # The literal block is never truncated.
        self._max_refinements = max(self._max_refinements, self._committed)

    def _commit(self, row, weights, first_complement: int) -> None:
        rt = self.real_type
        row = rt.freeze(row)
        weights = rt.freeze(weights)
        assert len(row) == len(weights), "abscissa and weight rows differ in length"
        assert 0 <= first_complement <= len(row)
        self._abscissas.append(row)
        self._weights.append(weights)
        self._first_complements.append(int(first_complement))
        # Publish the level last so unlocked readers never see a partial one.
        self._committed += 1

    def _extend_locked(self) -> None:
        rt = self.real_type
        level = self._committed + 1
        h = rt.ldexp(1, -level)
        grid = rt.positions(h, self._t_max, 2 * h)
        first_complement = rt.count_below(grid, self._t_crossover)
        row = rt.concat(
            rt.apply(abscissa_at_t, grid[:first_complement]),
            rt.apply(_negative_complement_at_t, grid[first_complement:]),
        )
        weights = rt.apply(weight_at_t, grid)
        self._commit(row, weights, first_complement)
        logger.debug("Committed refinement level %d (%d samples, first complement %d)",
                     level, len(grid), first_complement)

    def extend_refinements(self) -> int:
        """Compute the next uncommitted level.

        Returns:
            The level that was committed

        Raises:
            IndexError: If the table already holds ``max_refinements`` levels
        """
        with self._lock:
            if self._committed >= self._max_refinements:
                raise IndexError(
                    f"refinement table is full at level {self._max_refinements}")
            self._extend_locked()
            return self._committed

    def _ensure(self, level: int) -> None:
        if 0 <= level <= self._committed:
            return
        if level < 0 or level > self._max_refinements:
            raise IndexError(
                f"refinement level {level} exceeds max_refinements={self._max_refinements}")
        with self._lock:
            while self._committed < level:
                self._extend_locked()
        assert self._committed >= level

    def row(self, level: int):
        """Abscissa row of a refinement level, computing it if needed."""
        self._ensure(level)
        return self._abscissas[level]

    def weight_row(self, level: int):
        """Weight row of a refinement level, computing it if needed."""
        self._ensure(level)
        return self._weights[level]

    def first_complement_index(self, level: int) -> int:
        """Index of the first complement-encoded entry of a level."""
        self._ensure(level)
        return self._first_complements[level]

    def __len__(self) -> int:
        return self._committed + 1

    def __repr__(self) -> str:
        return (f"AbscissaTable(real_type={self.real_type.name!r}, "
                f"committed={self._committed}, max_refinements={self._max_refinements})")
