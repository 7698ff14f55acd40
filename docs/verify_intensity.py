#!/usr/bin/env python3
"""Fuzz IntensityStore against a dense numpy reference array."""

from __future__ import annotations

import argparse
import random
import sys
from pathlib import Path
from typing import List, Tuple

import numpy as np

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from im_store import IntensityStore, breakpoint_arrays  # noqa: E402


def _dense_from_breakpoints(breakpoints: dict, lo: int, hi: int) -> np.ndarray:
    """Evaluate the step function at every integer in ``[lo, hi)``."""
    positions, values = breakpoint_arrays(breakpoints)
    grid = np.arange(lo, hi, dtype=np.int64)
    if positions.size == 0:
        return np.zeros_like(grid)
    idx = np.searchsorted(positions, grid, side="right") - 1
    out = np.where(idx >= 0, values[np.clip(idx, 0, None)], 0)
    return out.astype(np.int64)


def _check_canonical(breakpoints: dict) -> List[str]:
    problems: List[str] = []
    items = list(breakpoints.items())
    keys = [k for k, _ in items]
    if keys != sorted(keys):
        problems.append("keys not ascending")
    if items and items[0][1] == 0:
        problems.append("leading zero key")
    if len(items) >= 2 and items[-1][1] == 0 and items[-2][1] == 0:
        problems.append("more than one trailing zero key")
    if items and items[-1][1] != 0:
        problems.append("last key is non-zero")
    return problems


def _run_trial(rng: random.Random, n_ops: int, lo: int, hi: int) -> Tuple[int, List[str]]:
    store = IntensityStore()
    ref = np.zeros(hi - lo, dtype=np.int64)
    for step in range(n_ops):
        a = rng.randrange(lo, hi - 1)
        b = rng.randrange(a + 1, hi)
        amount = rng.randint(-3, 3)
        if rng.random() < 0.5:
            result = store.add(a, b, amount)
            ref[a - lo:b - lo] += amount
            label = f"add({a}, {b}, {amount})"
        else:
            result = store.set(a, b, amount)
            ref[a - lo:b - lo] = amount
            label = f"set({a}, {b}, {amount})"
        dense = _dense_from_breakpoints(result, lo, hi)
        problems = _check_canonical(result)
        if not np.array_equal(dense, ref):
            bad = int(np.flatnonzero(dense != ref)[0]) + lo
            problems.append(f"value mismatch at {bad}: store={int(dense[bad - lo])} ref={int(ref[bad - lo])}")
        if problems:
            return step, [f"after {label}: {p}" for p in problems] + [f"map={result}"]
    return n_ops, []


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--trials", type=int, default=200, help="Number of random operation sequences (default: 200)")
    parser.add_argument("--ops", type=int, default=30, help="Operations per trial (default: 30)")
    parser.add_argument("--lo", type=int, default=-20, help="Lowest position drawn (default: -20)")
    parser.add_argument("--hi", type=int, default=40, help="Exclusive upper bound on positions (default: 40)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    args = parser.parse_args()

    rng = random.Random(args.seed)
    failures = 0
    for trial in range(args.trials):
        _, problems = _run_trial(rng, args.ops, args.lo, args.hi)
        if problems:
            failures += 1
            print(f"trial {trial}:")
            for line in problems:
                print(f"  {line}")

    print(f"\n{args.trials - failures}/{args.trials} trials matched the dense reference")
    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
