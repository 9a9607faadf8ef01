"""CLI for trying masking algorithms from a shell.

Usage:
    # Mask each stdin line with a named algorithm
    printf '13812345678\n13900001111\n' | python -m pii_shield.cli mask --algo phone

    # Show which entities the free-text algorithm would mask (JSON)
    echo 'call 13812345678 or mail ab@test.com' | python -m pii_shield.cli scan

    # List registered algorithm names (including configured ones)
    python -m pii_shield.cli --config shield.yaml algorithms
"""

from __future__ import annotations
import argparse
import json
import os
import sys

from .config import build_registry, load_config, load_from_yaml
from .registry import AlgorithmRegistry

DEFAULT_CONFIG = os.environ.get("PII_SHIELD_CONFIG", "")


def _build_registry(args: argparse.Namespace) -> AlgorithmRegistry:
    cfg = load_from_yaml(args.config) if args.config else load_config({})
    if args.presidio:
        cfg["text"]["use_presidio"] = True
    return build_registry(cfg)


def cmd_mask(args: argparse.Namespace) -> None:
    """Mask stdin line by line."""
    algo = _build_registry(args).resolve(args.algo)
    for line in sys.stdin:
        sys.stdout.write(algo.mask(line.rstrip("\n")) + "\n")


def cmd_scan(args: argparse.Namespace) -> None:
    """Report the entities the text algorithm finds in stdin."""
    algo = _build_registry(args).resolve("text")
    text = sys.stdin.read()
    output = {
        "text": algo.mask(text),
        "entities": [
            {"type": e.entity_type, "start": e.start, "end": e.end,
             "score": e.score, "source": e.source}
            for e in algo.find(text)
        ],
    }
    json.dump(output, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_algorithms(args: argparse.Namespace) -> None:
    """List registered algorithm names."""
    json.dump(_build_registry(args).names(), sys.stdout)
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="pii_shield",
        description="Field-level PII masking",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="YAML config path")
    parser.add_argument("--presidio", action="store_true", help="Enable the NER layer for 'text'")

    sub = parser.add_subparsers(dest="command", required=True)
    p_mask = sub.add_parser("mask", help="Mask stdin lines")
    p_mask.add_argument("--algo", default="default", help="Algorithm name or module:Class")
    sub.add_parser("scan", help="List PII entities found in stdin text (JSON)")
    sub.add_parser("algorithms", help="List algorithm names")

    args = parser.parse_args(argv)

    cmds = {
        "mask": cmd_mask,
        "scan": cmd_scan,
        "algorithms": cmd_algorithms,
    }
    cmds[args.command](args)


if __name__ == "__main__":
    main()
