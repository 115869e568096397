import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from gcs2d import SketchFormatError, dump_points, load_sketch_file
from gcs2d.solver import ALGORITHMS

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Solve a 2D constraint sketch")
    parser.add_argument("path", help="Path to the JSON sketch file")
    parser.add_argument(
        "--algorithm",
        choices=ALGORITHMS,
        help="Iterative algorithm (default: from the sketch, else dogleg)",
    )
    parser.add_argument("--max-iterations", type=int, help="Iteration budget")
    parser.add_argument("--tolerance", type=float, help="Residual tolerance")
    parser.add_argument(
        "--partition",
        action="store_true",
        help="Solve independent constraint groups separately",
    )
    parser.add_argument(
        "--diagnose",
        action="store_true",
        help="Report redundant and conflicting constraints",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--output",
        help="Write the solved coordinates to this path instead of stdout",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    logger.info("Loading sketch from %s", args.path)
    try:
        sketch = load_sketch_file(args.path)
    except (OSError, SketchFormatError) as exc:
        logger.error("Cannot load sketch: %s", exc)
        return 2

    overrides: Dict[str, Any] = {}
    if args.algorithm:
        overrides["algorithm"] = args.algorithm
    if args.max_iterations is not None:
        overrides["max_iterations"] = args.max_iterations
    if args.tolerance is not None:
        overrides["tolerance"] = args.tolerance
    if args.partition:
        overrides["partition"] = True

    try:
        result = sketch.system.solve(**overrides)
    except ValueError as exc:
        logger.error("Invalid solver options: %s", exc)
        return 2
    for warning in result.warnings:
        logger.warning("%s", warning)

    payload: Dict[str, Any] = {
        "status": result.status,
        "iterations": result.iterations,
        "max_residual": result.max_residual,
        "dof": result.dof,
        "state": result.state,
        "points": dump_points(sketch),
    }
    if args.diagnose:
        diagnosis = sketch.system.diagnose()
        payload["diagnosis"] = {
            "redundant": diagnosis.redundant,
            "conflicting": diagnosis.conflicting,
        }

    text = json.dumps(payload, indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote solved coordinates to %s", args.output)
    else:
        print(text)
    return 0 if result.converged else 1


if __name__ == "__main__":
    sys.exit(main())
