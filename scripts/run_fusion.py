#!/usr/bin/env python3
"""NextSignal CLI — run one fusion pass around a point.

Usage:
    python scripts/run_fusion.py --lat 12.9716 --lng 77.5946
    python scripts/run_fusion.py --lat 12.9716 --lng 77.5946 --radius 500 --time-window 7200
    python scripts/run_fusion.py --lat 12.9716 --lng 77.5946 --store firestore --llm-backend anthropic

SIGTERM or Ctrl-C stops the run before the next event write; events already
written stay in the store.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

# Ensure project root is on sys.path for consistent import resolution
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from config.defaults import (  # noqa: E402
    ANTHROPIC_MODEL,
    DEFAULT_FUSION_RADIUS_M,
    DEFAULT_TIME_WINDOW_S,
    OLLAMA_MODEL,
    STORE_PATH,
)
from config.settings import PipelineConfig  # noqa: E402
from nextsignal.errors import NextSignalError  # noqa: E402
from nextsignal.io.persistence import encode_json  # noqa: E402
from nextsignal.io.store import JsonFileStore, Store  # noqa: E402
from nextsignal.pipeline import FusionOrchestrator  # noqa: E402
from nextsignal.utils.logging_utils import configure_logging  # noqa: E402


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argparse argument parser."""
    parser = argparse.ArgumentParser(
        prog="run_fusion",
        description="NextSignal — fuse recent citizen reports into events",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # ── Fusion window ───────────────────────────────────────────────────────────
    parser.add_argument("--lat", type=float, required=True, help="Center latitude")
    parser.add_argument("--lng", type=float, required=True, help="Center longitude")
    parser.add_argument(
        "--radius",
        type=float,
        default=DEFAULT_FUSION_RADIUS_M,
        help="Search radius around the center (metres)",
    )
    parser.add_argument(
        "--time-window",
        type=int,
        default=DEFAULT_TIME_WINDOW_S,
        help="Look-back window for candidate reports (seconds)",
    )

    # ── Store ───────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--store",
        type=str,
        default="json",
        choices=["json", "firestore"],
        help="Document store backend",
    )
    parser.add_argument(
        "--store-path",
        type=str,
        default=STORE_PATH,
        help="Directory of collection files for the json store",
    )
    parser.add_argument(
        "--firebase-credentials",
        type=str,
        default=None,
        help="Service-account JSON for the firestore store (default: FIREBASE_CREDENTIALS)",
    )

    # ── LLM backend ─────────────────────────────────────────────────────────────
    parser.add_argument(
        "--llm-backend",
        type=str,
        default="ollama",
        choices=["anthropic", "ollama"],
        help="LLM backend used for grouping and synthesis",
    )
    parser.add_argument("--anthropic-model", type=str, default=ANTHROPIC_MODEL)
    parser.add_argument("--ollama-model", type=str, default=OLLAMA_MODEL)
    parser.add_argument(
        "--ollama-host",
        type=str,
        default="http://localhost:11434",
        help="Ollama server URL",
    )

    # ── Output and logging ──────────────────────────────────────────────────────
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity level (default: LOG_LEVEL env or INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Replacement path for the file log handler",
    )
    return parser


def args_to_config(args: argparse.Namespace) -> PipelineConfig:
    """Convert parsed CLI arguments to a PipelineConfig instance."""
    overrides = {}
    if args.firebase_credentials:
        overrides["firebase_credentials"] = args.firebase_credentials
    if args.log_level:
        overrides["log_level"] = args.log_level
    return PipelineConfig(
        fusion_radius_m=args.radius,
        time_window_s=args.time_window,
        llm_backend=args.llm_backend,
        anthropic_model=args.anthropic_model,
        ollama_model=args.ollama_model,
        ollama_host=args.ollama_host,
        store_path=args.store_path,
        **overrides,
    )


def build_store(kind: str, config: PipelineConfig) -> Store:
    if kind == "firestore":
        from nextsignal.io.firestore_store import FirestoreStore

        return FirestoreStore(credentials_path=config.firebase_credentials)
    return JsonFileStore(config.store_path)


def main() -> None:
    """CLI entrypoint — parse arguments, run one fusion pass, print the result as JSON."""
    parser = build_arg_parser()
    args = parser.parse_args()

    try:
        config = args_to_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    configure_logging(log_level=config.log_level, log_file=args.log_file)
    logger = logging.getLogger("nextsignal.run_fusion")

    cancel_event = threading.Event()

    def _request_stop(signum, frame):
        logger.warning("Signal %d received; stopping before the next event write", signum)
        cancel_event.set()

    signal.signal(signal.SIGTERM, _request_stop)
    signal.signal(signal.SIGINT, _request_stop)

    logger.info(
        "Fusion starting at %.4f,%.4f | radius=%.0fm | window=%ds | backend=%s | store=%s",
        args.lat, args.lng, config.fusion_radius_m, config.time_window_s,
        config.llm_backend, args.store,
    )

    try:
        store = build_store(args.store, config)
        orchestrator = FusionOrchestrator(config, store)
        result = orchestrator.run(args.lat, args.lng, cancel_event=cancel_event)
    except NextSignalError as exc:
        logger.error("Fusion failed (%s): %s", exc.kind, exc.message)
        print(encode_json({"success": False, "error": exc.to_dict()}, indent=2))
        sys.exit(1)
    except Exception as exc:
        logger.exception("Fusion failed with unhandled exception: %s", exc)
        sys.exit(1)

    output = {"success": True, "runId": result.run_id, **result.to_dict()}
    if result.cancelled:
        output["cancelled"] = True
    print(encode_json(output, indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
