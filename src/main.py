# src/main.py - v2
"""CLI entry point: synthesize, status and trace commands.

Usage:
    distiller synthesize <signals.json> [options]
    distiller status [--corpus-dir DIR]
    distiller trace <axiom_id> [--corpus-dir DIR]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from distiller.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="distiller",
        description=f"distiller v{__version__} - signal to axiom synthesis engine",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- synthesize ---
    p_synth = subparsers.add_parser(
        "synthesize", help="Run a synthesis cycle over a signals file",
    )
    p_synth.add_argument(
        "signals_file", type=Path, help="JSON file holding a list of signals",
    )
    p_synth.add_argument(
        "--corpus-dir", type=Path, default=None,
        help="Corpus directory (default: CORPUS_DIR setting)",
    )
    p_synth.add_argument(
        "--force-resynthesis", action="store_true",
        help="Discard the persisted hierarchy and resynthesize",
    )
    p_synth.add_argument(
        "--no-save", action="store_true",
        help="Do not persist the resulting corpus",
    )
    p_synth.set_defaults(func=_cmd_synthesize)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show the persisted corpus",
    )
    p_status.add_argument(
        "--corpus-dir", type=Path, default=None,
        help="Corpus directory (default: CORPUS_DIR setting)",
    )
    p_status.set_defaults(func=_cmd_status)

    # --- trace ---
    p_trace = subparsers.add_parser(
        "trace", help="Show the principles and signals behind an axiom",
    )
    p_trace.add_argument("axiom_id", help="Axiom id (ax_..._cN)")
    p_trace.add_argument(
        "--corpus-dir", type=Path, default=None,
        help="Corpus directory (default: CORPUS_DIR setting)",
    )
    p_trace.set_defaults(func=_cmd_trace)

    return parser


async def _cmd_synthesize(args: argparse.Namespace) -> int:
    """Execute one synthesis cycle."""
    from distiller.api.facade import synthesize
    from distiller.cycle.cycle_manager import format_cycle_decision

    signals_file: Path = args.signals_file
    if not signals_file.exists():
        logger.error("File not found: %s", signals_file)
        return 1

    signals = _load_signals(signals_file)
    if signals is None:
        return 1

    settings = _load_settings(args.corpus_dir)
    logger.info("Synthesizing %d signals from %s", len(signals), signals_file.name)
    result = await synthesize(
        signals,
        settings=settings,
        force_resynthesis=args.force_resynthesis,
        save=not args.no_save,
    )

    print(f"\nSynthesis complete:")
    print(f"  Run ID:       {result.run_id}")
    print(f"  Cycle:        {result.corpus.cycle_count}")
    print(f"  Principles:   {len(result.principles)}")
    print(f"  Axioms:       {len(result.axioms)} "
          f"({sum(1 for a in result.axioms if a.promotable)} promotable)")
    print(f"  Tensions:     {len(result.tensions)}")
    print(f"  Orphaned:     {len(result.orphaned_signals)} signals")
    for message in result.guardrails:
        print(f"  Warning:      {message}")
    print()
    print(format_cycle_decision(result.cycle_decision))
    return 0


async def _cmd_status(args: argparse.Namespace) -> int:
    """Display the persisted corpus summary."""
    from distiller.graph.lineage import build_tension_graph, tension_clusters
    from distiller.storage.corpus_store import CorpusStore

    settings = _load_settings(args.corpus_dir)
    corpus = CorpusStore(settings.corpus_dir).load()
    if corpus is None:
        print(f"\nNo corpus in {settings.corpus_dir}")
        return 0

    promotable = corpus.promotable_axioms
    print(f"\nCorpus {corpus.id}:")
    print(f"  Cycle:        {corpus.cycle_count}")
    print(f"  Updated:      {corpus.updated_at.isoformat()}")
    print(f"  Principles:   {len(corpus.principles)}")
    print(f"  Axioms:       {len(corpus.axioms)} ({len(promotable)} promotable)")
    print(f"  Tensions:     {len(corpus.tensions)}")
    for axiom in sorted(promotable, key=lambda a: (-a.n_count, a.id)):
        print(f"    [{axiom.tier.value}] {axiom.text} (N={axiom.n_count})")
    for group in tension_clusters(build_tension_graph(corpus.axioms, corpus.tensions)):
        print(f"  Tension cluster: {', '.join(sorted(group))}")
    return 0


async def _cmd_trace(args: argparse.Namespace) -> int:
    """Walk one axiom back to its source signals."""
    from distiller.graph.lineage import build_lineage_graph, trace_to_source
    from distiller.storage.corpus_store import CorpusStore

    settings = _load_settings(args.corpus_dir)
    corpus = CorpusStore(settings.corpus_dir).load()
    if corpus is None:
        logger.error("No corpus in %s", settings.corpus_dir)
        return 1

    graph = build_lineage_graph(corpus.principles, corpus.axioms)
    try:
        chain = trace_to_source(graph, args.axiom_id)
    except KeyError:
        logger.error("Unknown axiom: %s", args.axiom_id)
        return 1

    axiom = chain.axiom
    print(f"\n[{axiom.tier.value}] {axiom.text}")
    if axiom.promotion_blocker:
        print(f"  Blocked: {axiom.promotion_blocker}")
    for principle in chain.principles:
        print(f"  Principle {principle.id} (weight {principle.evidence_weight:.2f})")
        for signal in principle.signals:
            print(
                f"    - {signal.id} [{signal.provenance_origin.value}/"
                f"{signal.stance.value}] {signal.text}"
            )
    if chain.sources:
        print(f"  Sources: {', '.join(chain.sources)}")
    return 0


def _load_settings(corpus_dir: Path | None):
    from distiller.config.settings import load_settings

    if corpus_dir is None:
        return load_settings()
    return load_settings(corpus_dir=corpus_dir)


def _load_signals(path: Path):
    """Parse a JSON list of signals; None (with an error logged) if invalid."""
    from pydantic import ValidationError

    from distiller.core.models import Signal

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read signals from %s: %s", path, e)
        return None
    if not isinstance(raw, list):
        logger.error("Signals file must hold a JSON list: %s", path)
        return None
    try:
        return [Signal.model_validate(item) for item in raw]
    except ValidationError as e:
        logger.error("Invalid signal in %s: %s", path, e)
        return None


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
