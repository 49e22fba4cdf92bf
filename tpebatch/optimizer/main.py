"""Command-line entry point for the optimization harness."""

import argparse
import json
import logging
import sys
from functools import partial

from tpebatch.common.config import get_settings
from tpebatch.common.logging import setup_logging
from .algorithms import OptimizerError
from .engine import OptimizationEngine, create_optimizer
from .export import export_summary_json, format_summary
from .objectives import OBJECTIVES

logger = logging.getLogger(__name__)

DEFAULT_BOUNDS = {
    'a': [0.0, 1.0],
    'b': [0.0, 1.0],
    'c': [0.0, 1.0],
    'd': [0.0, 1.0],
}


def cli_optimize(args) -> int:
    """Run optimization from CLI."""
    settings = get_settings()
    opt = settings.optimizer

    bounds = DEFAULT_BOUNDS
    if args.bounds:
        try:
            bounds = json.loads(args.bounds)
        except json.JSONDecodeError:
            logger.error("Invalid JSON for --bounds")
            return 1
        if not isinstance(bounds, dict):
            logger.error("--bounds must be a JSON object of name -> [low, high]")
            return 1

    trial_budget = args.trials if args.trials is not None else opt.trial_budget
    batch_size = args.batch_size if args.batch_size is not None else opt.batch_size
    if trial_budget <= 0 or batch_size <= 0:
        logger.error("--trials and --batch-size must be positive")
        return 1

    delay_ms = args.delay_ms if args.delay_ms is not None else opt.objective_delay_ms
    objective = partial(OBJECTIVES[args.objective], delay_ms=delay_ms)

    logger.info("=" * 60)
    logger.info("Batch Parameter Optimization")
    logger.info("=" * 60)
    logger.info(f"Objective: {args.objective} ({args.direction or opt.direction})")
    logger.info(f"Bounds: {bounds}")
    logger.info(f"Sampler: {args.sampler or opt.sampler}")
    logger.info("=" * 60)

    try:
        optimizer = create_optimizer(
            bounds,
            sampler=args.sampler or opt.sampler,
            seed=args.seed if args.seed is not None else opt.seed,
            parzen=settings.parzen
        )

        engine = OptimizationEngine(
            optimizer=optimizer,
            objective=objective,
            trial_budget=trial_budget,
            batch_size=batch_size,
            direction=args.direction or opt.direction,
            num_workers=args.workers if args.workers is not None else opt.num_workers,
            execution_method=args.method or opt.execution_method
        )

        summary = engine.run()

    except OptimizerError as e:
        logger.error(
            f"Optimization failed at stage '{e.stage}'"
            + (f" for dimension '{e.dimension}'" if e.dimension else "")
            + f": {e}"
        )
        return 1
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    print(export_summary_json(summary) if args.json else format_summary(summary))
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Batch ask/tell black-box optimizer")
    parser.add_argument('--log-level', default=None, help='Log level (DEBUG, INFO, WARNING, ERROR)')
    parser.add_argument('--log-format', default=None, choices=['json', 'text'], help='Log format')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    optimize_parser = subparsers.add_parser('optimize', help='Run an optimization')
    optimize_parser.add_argument('--bounds', help='Dimension bounds (JSON object of name -> [low, high])')
    optimize_parser.add_argument('--objective', default='ratio', choices=sorted(OBJECTIVES),
                                 help='Objective function')
    optimize_parser.add_argument('--direction', choices=['maximize', 'minimize'], default=None,
                                 help='Optimization direction')
    optimize_parser.add_argument('--trials', type=int, default=None, help='Trial budget')
    optimize_parser.add_argument('--batch-size', type=int, default=None, help='Batch size')
    optimize_parser.add_argument('--workers', type=int, default=None, help='Number of workers')
    optimize_parser.add_argument('--method', choices=['thread', 'process'], default=None,
                                 help='Executor method')
    optimize_parser.add_argument('--sampler', choices=['parzen', 'optuna'], default=None,
                                 help='Per-dimension sampler')
    optimize_parser.add_argument('--seed', type=int, default=None, help='Random seed')
    optimize_parser.add_argument('--delay-ms', type=int, default=None,
                                 help='Artificial objective delay in milliseconds')
    optimize_parser.add_argument('--json', action='store_true', help='Print summary as JSON')

    args = parser.parse_args(argv)

    setup_logging(settings.service_name, log_level=args.log_level, log_format=args.log_format)

    if args.command == 'optimize':
        return cli_optimize(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
