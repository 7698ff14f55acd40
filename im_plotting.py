from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from im_store import breakpoint_arrays


LINE_COLOR = "C0"
EDGE_COLOR = "tab:gray"
EDGE_STYLE = (0, (4, 3))

_MATPLOTLIB_STYLE_READY = False


def _ensure_matplotlib_style(plt) -> None:
    global _MATPLOTLIB_STYLE_READY
    if not _MATPLOTLIB_STYLE_READY:
        try:
            plt.style.use("ggplot")
        except OSError:
            pass
        _MATPLOTLIB_STYLE_READY = True


def _step_xy(positions: np.ndarray, values: np.ndarray, pad: float) -> Tuple[np.ndarray, np.ndarray]:
    # Leading/trailing implicit zero regions are drawn as `pad`-wide stubs.
    px = positions.astype(np.float64)
    vy = values.astype(np.float64)
    xs = np.concatenate(([px[0] - pad], px, [px[-1] + pad]))
    ys = np.concatenate(([0.0], vy, [vy[-1]]))
    return xs, ys


def _plot_intensity(
    breakpoints: Dict[int, int],
    out_png: str,
    title: Optional[str] = None,
    mark_edges: bool = True,
) -> None:
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except Exception as e:  # pragma: no cover
        raise RuntimeError("matplotlib is required for plotting. Install with: pip install matplotlib") from e

    _ensure_matplotlib_style(plt)
    positions, values = breakpoint_arrays(breakpoints)

    fig, ax = plt.subplots(figsize=(12, 5))
    if positions.size == 0:
        ax.axhline(0, color=LINE_COLOR, linewidth=1.8, label="Intensity")
        ax.text(0.5, 0.5, "identically zero", transform=ax.transAxes, ha="center", va="center", color=EDGE_COLOR)
    else:
        span = int(positions[-1]) - int(positions[0])
        pad = float(max(1, span // 10))
        xs, ys = _step_xy(positions, values, pad)
        ax.step(xs, ys, where="post", linewidth=1.8, color=LINE_COLOR, label="Intensity")
        ax.set_xlim(float(xs[0]), float(xs[-1]))
        if mark_edges:
            edges: List[int] = [int(positions[0])]
            if values[-1] == 0:
                edges.append(int(positions[-1]))
            for x in edges:
                ax.axvline(x, color=EDGE_COLOR, linestyle=EDGE_STYLE, linewidth=1.0)

    ax.set_xlabel("Position")
    ax.set_ylabel("Intensity")
    ax.set_title(title or "Intensity")
    ax.legend(loc="upper right")
    fig.tight_layout()
    fig.savefig(out_png, dpi=120)
    plt.close(fig)
    logging.debug("Rendered %d breakpoint(s) to %s", int(positions.size), out_png)
