#!/usr/bin/env python3
"""noisewatch CLI entrypoint: stream samples through the estimation pool."""

from __future__ import annotations

import argparse
import json
import sys
import threading
import time
from typing import Any, List, Optional, Set

import numpy as np

from noisewatch.config import DEFAULT_WORKERS, POLL_SECONDS, QUEUE_DEPTH, EstimatorConfig
from noisewatch.dsp.noise_estimation import OutputTransform
from noisewatch.errors import ConfigurationError, OperationCancelled
from noisewatch.io.estimate_log import EstimateLogger
from noisewatch.io.profiles import default_estimator_profiles, serialize_profiles
from noisewatch.io.segments import SegmentAccumulator, load_samples
from noisewatch.util.duration import parse_duration_to_seconds
from noisewatch.util.exit_codes import ExitCode
from noisewatch.util.logging import configure_logging, get_logger, log_exception
from noisewatch.worker.cancellation import CancellationToken
from noisewatch.worker.pool import WorkerPool
from noisewatch.worker.queues import CancellableQueue
from noisewatch.worker.resequence import EstimateResequencer
from noisewatch.worker.types import Batch, NoiseEstimate


logger = get_logger(__name__)

# samples handed to the accumulator per push, mimics a live feed
_FEED_CHUNK = 4096


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        code = run(args)
    except Exception:
        log_exception(logger, "Unhandled error", error_type="unhandled")
        code = ExitCode.GENERAL_ERROR
    if code != ExitCode.SUCCESS:
        logger.error("Exiting with code %d (%s)", code, ExitCode.message(code))
    return code


def run(args: argparse.Namespace) -> int:
    """Top-level dispatcher. Returns an ExitCode value."""
    configure_logging(level=args.log_level, json_file=args.log_json)
    if args.list_profiles:
        print(json.dumps(serialize_profiles(), indent=2, sort_keys=True))
        return ExitCode.SUCCESS

    try:
        samples = _load_input(args)
        window = _load_window(args)
    except (OSError, ValueError) as exc:
        logger.error("Failed to read input: %s", exc)
        return ExitCode.INPUT_ERROR

    config = EstimatorConfig(
        seg_length=args.seg_length,
        frame_size=args.frame_size,
        tail_fraction=args.tail_fraction,
        scale_factor=args.scale_factor,
        transform=args.transform,
        sample_rate_hz=args.sample_rate,
        window=window,
    )
    try:
        config.validate()
        preview = config.build_estimator()
    except ConfigurationError as exc:
        logger.error("Invalid estimator configuration: %s", exc)
        return ExitCode.INVALID_ARGS
    if preview.window_fallback:
        logger.warning("Custom window ignored, estimates use a rectangular window")

    return _run_pool(args, config, samples)


def _run_pool(args: argparse.Namespace, config: EstimatorConfig, samples: np.ndarray) -> int:
    batches: CancellableQueue[Batch] = CancellableQueue(QUEUE_DEPTH, POLL_SECONDS)
    results: CancellableQueue[NoiseEstimate] = CancellableQueue(QUEUE_DEPTH, POLL_SECONDS)
    token = CancellationToken()
    pool = WorkerPool(args.workers, batches, results, config.build_pipeline, token=token)
    out = EstimateLogger(jsonl_path=args.jsonl)
    reseq = EstimateResequencer() if args.ordered else None

    produced = [0]
    feed_errors: List[Exception] = []
    producer_done = threading.Event()

    def _feed() -> None:
        acc = SegmentAccumulator(config.seg_length, config.frame_size)
        try:
            for start in range(0, samples.shape[0], _FEED_CHUNK):
                for batch in acc.push(samples[start : start + _FEED_CHUNK]):
                    batches.publish(batch, token)
                    produced[0] += 1
        except OperationCancelled:
            pass
        except ValueError as exc:
            feed_errors.append(exc)
            logger.error("Rejected input after %d batches: %s", produced[0], exc)
            token.cancel(f"input rejected: {exc}")
        finally:
            if acc.buffered_samples or acc.pending_segments:
                logger.info(
                    "Discarding %d trailing samples and %d incomplete-batch segments",
                    acc.buffered_samples,
                    acc.pending_segments,
                )
            producer_done.set()

    deadline = None
    if args.duration is not None:
        deadline = time.monotonic() + parse_duration_to_seconds(args.duration)

    exit_code = ExitCode.SUCCESS
    stop_reason = "input drained"
    pool.start()
    producer = threading.Thread(target=_feed, name="noisewatch-feed", daemon=True)
    producer.start()
    try:
        while not (producer_done.is_set() and out.count >= produced[0]):
            if deadline is not None and time.monotonic() >= deadline:
                logger.info("Duration elapsed after %d estimates", out.count)
                stop_reason = "duration elapsed"
                break
            try:
                estimate = results.take(token)
            except OperationCancelled:
                stop_reason = token.reason or "cancelled"
                break
            if estimate is None:
                continue
            for ready in reseq.push(estimate) if reseq is not None else [estimate]:
                out.write(ready)
    except KeyboardInterrupt:
        exit_code = ExitCode.INTERRUPTED
        stop_reason = "interrupted"
    finally:
        pool.shutdown(stop_reason)
        producer.join(timeout=max(1.0, 10 * POLL_SECONDS))

    try:
        published = pool.join(timeout=max(5.0, 50 * POLL_SECONDS))
    except Exception:
        log_exception(logger, "Estimation pool failed", error_type="pool_join")
        return ExitCode.WORKER_FAILED
    logger.info("Published %d estimates from %d batches (%s)", sum(published.values()), produced[0], published)
    if feed_errors:
        return ExitCode.INPUT_ERROR
    return exit_code


def _load_input(args: argparse.Namespace) -> np.ndarray:
    if args.input:
        return load_samples(args.input)
    rng = np.random.default_rng(args.seed)
    shape = (args.synthetic,) if args.channels == 1 else (args.synthetic, args.channels)
    return rng.normal(0.0, args.noise_std, size=shape)


def _load_window(args: argparse.Namespace) -> Optional[np.ndarray]:
    choice = args.window
    if choice == "hamming":
        return None
    if choice == "rectangular":
        return np.ones(args.seg_length, dtype=np.float64)
    return load_samples(choice)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    p = argparse.ArgumentParser(
        description="Welch-periodogram noise floor estimator running on a worker pool",
        argument_default=argparse.SUPPRESS,
    )
    src = p.add_mutually_exclusive_group()
    src.add_argument("--input", type=str, help="Sample file (.npy, .csv or whitespace text); columns are channels")
    src.add_argument("--synthetic", type=int, help="Generate this many Gaussian noise samples instead of reading a file")
    p.add_argument("--channels", type=int, help="Channels for --synthetic input (default 1)")
    p.add_argument("--noise-std", dest="noise_std", type=float, help="Standard deviation for --synthetic (default 1.0)")
    p.add_argument("--seed", type=int, help="RNG seed for --synthetic")

    p.add_argument("--seg-length", dest="seg_length", type=int, help="Samples per FFT segment (default 256)")
    p.add_argument("--frame-size", dest="frame_size", type=int, help="Segments averaged per batch (default 8)")
    p.add_argument("--workers", type=int, help=f"Estimation workers (default {DEFAULT_WORKERS})")
    p.add_argument("--window", type=str, help="hamming, rectangular, or a path to a window file (default hamming)")

    p.add_argument("--profile", type=str, help="Estimator profile supplying tail/transform/scale defaults (default amplitude)")
    p.add_argument("--tail-fraction", dest="tail_fraction", type=float, help="Fraction of top bins averaged for the floor")
    p.add_argument("--scale-factor", dest="scale_factor", type=float, help="Linear scale applied to the estimate")
    p.add_argument("--transform", choices=[t.value for t in OutputTransform], help="Output transform")
    p.add_argument("--sample-rate", dest="sample_rate", type=float, help="Sample rate [Hz] for linear_bandwidth")

    p.add_argument("--ordered", action="store_true", help="Emit estimates in batch order")
    p.add_argument("--jsonl", type=str, help="Also append estimates as JSON lines to this path")
    p.add_argument("--duration", type=str, help="Stop after this long (e.g. '30s', '10m') even if input remains")
    p.add_argument("--log-level", dest="log_level", type=str, help="DEBUG, INFO, WARNING or ERROR")
    p.add_argument("--log-json", dest="log_json", type=str, help="Write JSON log records to this path")
    p.add_argument("--list-profiles", dest="list_profiles", action="store_true", help="Print estimator profiles as JSON and exit")

    args = p.parse_args(argv)
    args._cli_overrides = set()

    _set_default(args, args._cli_overrides, "input", None)
    _set_default(args, args._cli_overrides, "synthetic", None)
    _set_default(args, args._cli_overrides, "channels", 1)
    _set_default(args, args._cli_overrides, "noise_std", 1.0)
    _set_default(args, args._cli_overrides, "seed", None)
    _set_default(args, args._cli_overrides, "seg_length", 256)
    _set_default(args, args._cli_overrides, "frame_size", 8)
    _set_default(args, args._cli_overrides, "workers", DEFAULT_WORKERS)
    _set_default(args, args._cli_overrides, "window", "hamming")
    _set_default(args, args._cli_overrides, "profile", "amplitude")
    _set_default(args, args._cli_overrides, "tail_fraction", None)
    _set_default(args, args._cli_overrides, "scale_factor", None)
    _set_default(args, args._cli_overrides, "transform", None)
    _set_default(args, args._cli_overrides, "sample_rate", None)
    _set_default(args, args._cli_overrides, "ordered", False)
    _set_default(args, args._cli_overrides, "jsonl", None)
    _set_default(args, args._cli_overrides, "duration", None)
    _set_default(args, args._cli_overrides, "log_level", None)
    _set_default(args, args._cli_overrides, "log_json", None)
    _set_default(args, args._cli_overrides, "list_profiles", False)

    _apply_estimator_profile(args, p)
    delattr(args, "_cli_overrides")

    if not args.list_profiles:
        if args.input is None and args.synthetic is None:
            p.error("--input or --synthetic is required unless --list-profiles is used")
        if args.synthetic is not None and args.synthetic <= 0:
            p.error("--synthetic must be > 0")
        if args.channels < 1:
            p.error("--channels must be >= 1")
        if args.workers < 1:
            p.error("--workers must be >= 1")

    if args.duration is not None:
        try:
            seconds = parse_duration_to_seconds(args.duration)
        except argparse.ArgumentTypeError as exc:
            p.error(str(exc))
        if seconds is None:
            p.error("--duration must not be empty")

    return args


def _set_default(args: argparse.Namespace, overrides: Set[str], attr: str, value: Any) -> None:
    if hasattr(args, attr):
        overrides.add(attr)
    else:
        setattr(args, attr, value)


def _apply_estimator_profile(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    profiles = default_estimator_profiles()
    profile = profiles.get(str(args.profile).lower())
    if not profile:
        parser.error(f"Unknown estimator profile '{args.profile}'. Use --list-profiles to inspect options.")

    overrides: Set[str] = getattr(args, "_cli_overrides", set())

    def maybe_set(attr: str, value: Any) -> None:
        if attr in overrides and getattr(args, attr) is not None:
            return
        setattr(args, attr, value)

    maybe_set("tail_fraction", profile.tail_fraction)
    maybe_set("scale_factor", profile.scale_factor)
    maybe_set("transform", profile.transform)
    maybe_set("sample_rate", profile.sample_rate_hz)


if __name__ == "__main__":
    sys.exit(main())
