from __future__ import annotations

# CLI orchestration for the intensity store. The store itself lives in
# im_store (core) and rendering in im_plotting (matplotlib).

import csv
import json
import logging
import sys
from typing import List, Optional

from im_store import (
    IntensityArgumentError,
    IntensityStore,
    Operation,
    _format_breakpoints,
    _setup_logging,
    apply_operations,
    load_operations,
    parse_operation_token,
    to_segments,
)

try:
    import typer
except Exception:  # pragma: no cover
    typer = None  # type: ignore


def _collect_operations(tokens: List[str], ops_file: Optional[str]) -> List[Operation]:
    ops: List[Operation] = []
    if ops_file:
        ops.extend(load_operations(ops_file))
    for tok in tokens:
        text = str(tok).strip()
        if text:
            ops.append(parse_operation_token(text))
    return ops


def _sidecar_path(output: str, ext: str) -> str:
    if output.lower().endswith(".csv"):
        return output[:-4] + ext
    return output + ext


def _write_csv(output: str, breakpoints: dict) -> None:
    with open(output, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["position", "intensity"])
        writer.writerows(breakpoints.items())


def _run(
    tokens: List[str],
    output: str,
    ops_file: Optional[str] = None,
    verbose: bool = False,
    png: Optional[str] = None,
    no_plot: bool = False,
    json_sidecar: bool = False,
    log_file: Optional[str] = None,
) -> int:
    _setup_logging(verbose, log_file=log_file)

    try:
        ops = _collect_operations(tokens, ops_file)
    except (OSError, ValueError) as e:
        logging.error(str(e))
        return 2
    if not ops:
        logging.error("No operations given; pass tokens like set:0:10:5 or --ops-file.")
        return 2

    store = IntensityStore()
    try:
        result = apply_operations(store, ops)
    except IntensityArgumentError as e:
        logging.error("Rejected operation: %s", e)
        return 2

    logging.info("Applied %d operation(s): %s", len(ops), _format_breakpoints(store.breakpoints()))

    _write_csv(output, result)
    logging.info("Wrote: %s", output)

    if json_sidecar:
        json_path = _sidecar_path(output, ".json")
        try:
            meta = {
                "command": "apply",
                "ops_file": ops_file,
                "output_csv": output,
                "n_operations": len(ops),
                "operations": [op.token() for op in ops],
            }
            data = {
                "meta": meta,
                "breakpoints": [[p, v] for p, v in result.items()],
                "segments": [seg._asdict() for seg in to_segments(result)],
            }
            with open(json_path, "w", encoding="utf-8") as jf:
                json.dump(data, jf, indent=2)
            logging.info("Wrote JSON: %s", json_path)
        except (OSError, TypeError) as exc:
            logging.warning("Failed to write JSON sidecar: %s", exc)

    if not no_plot:
        from im_plotting import _plot_intensity

        png_path = png or _sidecar_path(output, ".png")
        _plot_intensity(result, png_path, title=f"Intensity after {len(ops)} operation(s)")
        logging.info("Wrote plot: %s", png_path)

    return 0


def _format_segment_lines(result: dict) -> List[str]:
    lines: List[str] = []
    for seg in to_segments(result):
        end = "inf" if seg.end is None else str(seg.end)
        lines.append(f"[{seg.start}, {end})\t{seg.value}")
    return lines


def _show(tokens: List[str], ops_file: Optional[str] = None, verbose: bool = False) -> int:
    _setup_logging(verbose)
    try:
        ops = _collect_operations(tokens, ops_file)
        result = apply_operations(IntensityStore(), ops)
    except (OSError, ValueError) as e:
        logging.error(str(e))
        return 2
    lines = _format_segment_lines(result)
    if not lines:
        print("(identically zero)")
    for line in lines:
        print(line)
    return 0


def _build_typer_app():  # pragma: no cover
    app = typer.Typer(add_completion=False, help="Piecewise-constant intensity over integer ranges.")

    @app.command(name="apply")
    def apply(
        tokens: List[str] = typer.Argument(None, help="Operations as action:start:end:amount, e.g. set:0:10:5"),
        ops_file: Optional[str] = typer.Option(None, "--ops-file", "-f", help="Operations file (.json, .csv or one token per line)"),
        output: str = typer.Option(
            "intensity.csv",
            "--output",
            "-o",
            help="Output CSV path",
        ),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
        png: Optional[str] = typer.Option(None, "--png", help="Optional output PNG path (defaults next to CSV)"),
        no_plot: bool = typer.Option(False, "--no-plot", help="Disable PNG generation"),
        json_sidecar: bool = typer.Option(False, "--json/--no-json", help="Write JSON report next to the CSV"),
        log_file: Optional[str] = typer.Option(None, "--log-file", help="Optional log file path"),
    ) -> None:
        """Replay add/set operations and save the resulting breakpoints to CSV."""
        code = _run(
            tokens or [],
            output,
            ops_file=ops_file,
            verbose=verbose,
            png=png,
            no_plot=no_plot,
            json_sidecar=json_sidecar,
            log_file=log_file,
        )
        if code != 0:
            raise typer.Exit(code)

    @app.command()
    def show(
        tokens: List[str] = typer.Argument(None, help="Operations as action:start:end:amount"),
        ops_file: Optional[str] = typer.Option(None, "--ops-file", "-f", help="Operations file (.json, .csv or one token per line)"),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    ) -> None:
        """Replay operations and print the segments without writing files."""
        code = _show(tokens or [], ops_file=ops_file, verbose=verbose)
        if code != 0:
            raise typer.Exit(code)

    return app


def main_cli() -> int:
    if typer is None:
        print(
            "Typer is not installed. Install with: pip install typer",
            file=sys.stderr,
        )
        return 2
    app = _build_typer_app()
    app()
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main_cli())
