"""CLI utility that canonicalizes Markdown through the marktree codec."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from marktree.codec import MarkupCodec
from marktree.core.schema import PluginRegistry
from marktree.services.settings import (
    Settings,
    SettingsError,
    SettingsStore,
    load_plugin_registry,
    registry_from_settings,
)
from marktree.utils.logging import configure_logging

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_MISMATCH = 1
EXIT_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marktree-normalize",
        description="Parse Markdown into the marktree node model and write it back out.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        help="Markdown file to normalize (defaults to stdin).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Exit with status 1 when the file is not already in canonical form.",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Emit the raw JSON encoding instead of Markdown.",
    )
    parser.add_argument("--plugins", type=Path, help="YAML plugin registry file.")
    parser.add_argument("--settings", type=Path, help="Settings JSON file to load.")
    parser.add_argument("--output", type=Path, help="Write the result here instead of stdout.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser


def _read_source(path: Path | None) -> str:
    if path is None or str(path) == "-":
        return sys.stdin.read()
    return path.expanduser().read_text(encoding="utf-8")


def _resolve_codec(args: argparse.Namespace, settings: Settings) -> tuple[MarkupCodec, PluginRegistry]:
    if args.plugins is not None:
        registry = load_plugin_registry(args.plugins)
    else:
        registry = registry_from_settings(settings)
    return MarkupCodec(registry, settings=settings), registry


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by the console script and tests."""

    args = _build_parser().parse_args(argv)
    configure_logging(debug=args.debug)

    store = SettingsStore(args.settings) if args.settings is not None else SettingsStore()
    try:
        settings = store.load()
        configure_logging(settings)
        codec, registry = _resolve_codec(args, settings)
        source = _read_source(args.path)
    except (SettingsError, OSError) as exc:
        print(f"marktree-normalize: {exc}", file=sys.stderr)
        return EXIT_ERROR

    document = codec.parse(source)
    if args.raw:
        rendered = json.dumps(codec.to_raw(document), indent=2, sort_keys=True, ensure_ascii=False)
    else:
        rendered = codec.serialize(document)
    rendered = rendered.rstrip("\n") + "\n"
    LOGGER.debug("Normalized %s blocks with %d plugins registered", len(document.children), len(registry))

    if args.check:
        canonical_text = codec.serialize(document).rstrip("\n") + "\n"
        if source.rstrip("\n") + "\n" == canonical_text:
            return EXIT_OK
        label = args.path if args.path is not None else "<stdin>"
        print(f"{label}: not in canonical form", file=sys.stderr)
        return EXIT_MISMATCH

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(rendered, encoding="utf-8")
    else:
        sys.stdout.write(rendered)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
