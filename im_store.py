import bisect
import csv
import json
import logging
import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Literal, NamedTuple, Optional, Sequence, Tuple

import numpy as np


Action = Literal["add", "set"]

ACTIONS: Tuple[str, ...] = ("add", "set")


# -----------------
# Errors
# -----------------

class IntensityArgumentError(ValueError):
    """Base class for rejected ``add``/``set`` arguments."""


class InvalidTypeError(IntensityArgumentError, TypeError):
    pass


class InvalidRangeError(IntensityArgumentError):
    pass


# -----------------
# Data structures
# -----------------

@dataclass(frozen=True)
class RangeOp:
    start: int
    end: int
    amount: int


class Segment(NamedTuple):
    start: int
    end: Optional[int]
    value: int


@dataclass(frozen=True)
class Operation:
    action: Action
    start: int
    end: int
    amount: int

    def token(self) -> str:
        return f"{self.action}:{self.start}:{self.end}:{self.amount}"


def _is_integral(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def validate_range_op(start, end, amount) -> RangeOp:
    if not (_is_integral(start) and _is_integral(end) and _is_integral(amount)):
        raise InvalidTypeError(
            f"start, end and amount must be integers (got {start!r}, {end!r}, {amount!r})"
        )
    start, end, amount = int(start), int(end), int(amount)
    if start >= end:
        raise InvalidRangeError(f"start must be less than end (got {start} >= {end})")
    return RangeOp(start, end, amount)


# -----------------
# Store
# -----------------

class IntensityStore:
    """Piecewise-constant integer function over the integer line.

    State is a run-length encoded breakpoint map: each key is the position at
    which its value starts to apply, up to the next key (or forever for the
    greatest key). Positions before the first key read as 0.

    Keys live in a sorted list searched with ``bisect``; values in a dict.
    """

    def __init__(self) -> None:
        self._keys: List[int] = []
        self._values: Dict[int, int] = {}

    # Public API

    def add(self, start: int, end: int, amount: int) -> Dict[int, int]:
        """Add ``amount`` to every position in ``[start, end)``."""
        op = validate_range_op(start, end, amount)
        return self._update(op, "add")

    def set(self, start: int, end: int, amount: int) -> Dict[int, int]:
        """Overwrite every position in ``[start, end)`` with ``amount``."""
        op = validate_range_op(start, end, amount)
        return self._update(op, "set")

    def query(self) -> Dict[int, int]:
        return {k: self._values[k] for k in self._keys}

    @property
    def intensities(self) -> Dict[int, int]:
        return self.query()

    def breakpoints(self) -> List[Tuple[int, int]]:
        return [(k, self._values[k]) for k in self._keys]

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        return iter(self.breakpoints())

    def __bool__(self) -> bool:
        return bool(self._keys)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.query()!r})"

    # Internals

    def _update(self, op: RangeOp, action: Action) -> Dict[int, int]:
        if not self._keys and op.amount == 0:
            logging.debug("Skipping zero-amount %s on empty store", action)
            return {}

        extends_edge = self._materialize_bounds(op)
        lo = bisect.bisect_left(self._keys, op.start)
        hi = bisect.bisect_left(self._keys, op.end)
        for key in self._keys[lo:hi]:
            if action == "set":
                self._values[key] = op.amount
            else:
                self._values[key] += op.amount

        self._prune_zero_segments()
        logging.debug(
            "%s [%d, %d) %+d%s -> %d breakpoint(s)",
            action,
            op.start,
            op.end,
            op.amount,
            " (new edge)" if extends_edge else "",
            len(self._keys),
        )
        return self.query()

    def _value_before(self, position: int) -> int:
        idx = bisect.bisect_left(self._keys, position)
        if idx == 0:
            return 0
        return self._values[self._keys[idx - 1]]

    def _insert(self, position: int, value: int) -> None:
        if position not in self._values:
            bisect.insort(self._keys, position)
        self._values[position] = value

    def _materialize_bounds(self, op: RangeOp) -> bool:
        """Split segments so ``op.start`` and ``op.end`` are explicit keys.

        Returns True when ``op.end`` became (or already was) the right edge
        of the defined region, in which case it is pinned to 0.
        """
        if op.start not in self._values:
            self._insert(op.start, self._value_before(op.start))
        if op.end >= self._keys[-1]:
            self._insert(op.end, 0)
            return True
        if op.end not in self._values:
            self._insert(op.end, self._value_before(op.end))
        return False

    def _prune_zero_segments(self) -> None:
        self._drop_leading_zeros()
        self._drop_trailing_zeros()

    def _drop_leading_zeros(self) -> None:
        idx = 0
        while idx < len(self._keys) and self._values[self._keys[idx]] == 0:
            idx += 1
        for key in self._keys[:idx]:
            del self._values[key]
        del self._keys[:idx]

    def _drop_trailing_zeros(self) -> None:
        # Keep the first zero after the last non-zero key; it marks the edge.
        idx = len(self._keys)
        while idx > 0 and self._values[self._keys[idx - 1]] == 0:
            idx -= 1
        if idx == 0:
            return
        for key in self._keys[idx + 1:]:
            del self._values[key]
        del self._keys[idx + 1:]


# -----------------
# Export helpers
# -----------------

def _as_pairs(breakpoints) -> List[Tuple[int, int]]:
    if isinstance(breakpoints, IntensityStore):
        return breakpoints.breakpoints()
    if isinstance(breakpoints, dict):
        return sorted(breakpoints.items())
    return sorted((int(k), int(v)) for k, v in breakpoints)


def to_segments(breakpoints) -> List[Segment]:
    pairs = _as_pairs(breakpoints)
    segments: List[Segment] = []
    for idx, (start, value) in enumerate(pairs):
        end = pairs[idx + 1][0] if idx + 1 < len(pairs) else None
        segments.append(Segment(start, end, value))
    return segments


def breakpoint_arrays(breakpoints) -> Tuple[np.ndarray, np.ndarray]:
    pairs = _as_pairs(breakpoints)
    if not pairs:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
    try:
        positions = np.fromiter((p for p, _ in pairs), dtype=np.int64, count=len(pairs))
        values = np.fromiter((v for _, v in pairs), dtype=np.int64, count=len(pairs))
    except OverflowError:
        # Beyond int64: keep exact Python ints.
        positions = np.array([p for p, _ in pairs], dtype=object)
        values = np.array([v for _, v in pairs], dtype=object)
    return positions, values


# -----------------
# Operation parsing
# -----------------

def _parse_int_field(text, *, name: str, source: str) -> int:
    if isinstance(text, bool):
        raise ValueError(f"{source}: {name} must be an integer, got {text!r}")
    if isinstance(text, int):
        return text
    try:
        return int(str(text).strip())
    except ValueError:
        raise ValueError(f"{source}: {name} must be an integer, got {text!r}") from None


def _make_operation(action, start, end, amount, *, source: str) -> Operation:
    act = str(action or "").strip().lower()
    if act not in ACTIONS:
        raise ValueError(f"{source}: unknown action {action!r} (expected add|set)")
    return Operation(
        action=act,
        start=_parse_int_field(start, name="start", source=source),
        end=_parse_int_field(end, name="end", source=source),
        amount=_parse_int_field(amount, name="amount", source=source),
    )


def parse_operation_token(token: str) -> Operation:
    text = str(token).strip()
    parts = [p for p in text.replace(",", ":").replace(" ", ":").split(":") if p]
    if len(parts) != 4:
        raise ValueError(f"Malformed operation {token!r}; expected action:start:end:amount")
    return _make_operation(*parts, source=f"operation {token!r}")


def _record_field(record: dict, *names: str):
    for name in names:
        if name in record:
            return record[name]
    return None


def _operation_from_record(record: dict, source: str) -> Operation:
    return _make_operation(
        _record_field(record, "op", "action"),
        _record_field(record, "from", "start"),
        _record_field(record, "to", "end"),
        _record_field(record, "amount"),
        source=source,
    )


def load_operations(path_str: str) -> List[Operation]:
    path = Path(path_str).expanduser()
    suffix = path.suffix.lower()
    ops: List[Operation] = []
    if suffix == ".json":
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a JSON list of operations")
        for idx, record in enumerate(data):
            if not isinstance(record, dict):
                raise ValueError(f"{path}[{idx}]: expected an object, got {record!r}")
            ops.append(_operation_from_record(record, f"{path}[{idx}]"))
    elif suffix == ".csv":
        with path.open("r", newline="", encoding="utf-8") as fh:
            reader = csv.DictReader(fh)
            for line_no, row in enumerate(reader, start=2):
                ops.append(_operation_from_record(row, f"{path}:{line_no}"))
    else:
        for line in path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            ops.append(parse_operation_token(stripped))
    logging.debug("Loaded %d operation(s) from %s", len(ops), path)
    return ops


def apply_operations(store: IntensityStore, operations: Iterable[Operation]) -> Dict[int, int]:
    for op in operations:
        logging.debug("Applying %s", op.token())
        if op.action == "set":
            store.set(op.start, op.end, op.amount)
        else:
            store.add(op.start, op.end, op.amount)
    return store.query()


# -----------------
# Logging
# -----------------

def _setup_logging(verbose: bool, log_file: Optional[str] = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)s] %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(level=level, format=fmt, datefmt=datefmt)
    if log_file:
        fh = logging.FileHandler(log_file, mode="w")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(fmt, datefmt))
        logging.getLogger().addHandler(fh)
    # Suppress very chatty third-party DEBUG logs (e.g., matplotlib findfont)
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    logging.getLogger("matplotlib.font_manager").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.INFO)


def _format_breakpoints(breakpoints: Sequence[Tuple[int, int]]) -> str:
    if not breakpoints:
        return "{}"
    return "{" + ", ".join(f"{p}: {v}" for p, v in breakpoints) + "}"
