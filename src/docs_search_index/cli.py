"""CLI for building an index from a search payload and running one query."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys

import orjson

from docs_search_index.config import Settings
from docs_search_index.errors import InvalidCorpus
from docs_search_index.observability.context import generate_span_id, generate_trace_id, set_trace_context
from docs_search_index.observability.logging import configure_logging
from docs_search_index.observability.metrics import set_metrics_enabled
from docs_search_index.search.payload import load_payload_file
from docs_search_index.search.search_index import SearchIndex


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID_CORPUS = 2


def build_argument_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docs-search-index",
        description="Index a documentation search payload and print ranked results as JSON",
    )
    parser.add_argument("payload", type=Path, help="Path to search_index.js or a JSON record array")
    parser.add_argument("query", help="Query string; quote phrases and end a word with '*' for prefixes")
    parser.add_argument(
        "--max-results",
        type=int,
        default=settings.search_max_results,
        help=f"Maximum results to print (default: {settings.search_max_results})",
    )
    parser.add_argument(
        "--no-prefix",
        action="store_true",
        help="Treat a trailing '*' as part of the word instead of a prefix match",
    )
    parser.add_argument(
        "--soft-phrases",
        action="store_true",
        help="Rank quoted phrases higher instead of requiring them",
    )
    parser.add_argument(
        "--highlight",
        choices=("plain", "html"),
        help="Highlight matched terms in snippets",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help=f"Log level (default: {settings.log_level})",
    )
    parser.add_argument(
        "--plain-logs",
        action="store_true",
        help="Emit human-readable logs instead of JSON",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    settings = Settings()
    args = build_argument_parser(settings).parse_args(argv)

    configure_logging(args.log_level, json_output=settings.log_json and not args.plain_logs)
    set_metrics_enabled(settings.metrics_enabled)
    set_trace_context(generate_trace_id(), generate_span_id(), index=args.payload.stem)

    index = SearchIndex(args.payload.stem, settings=settings)
    try:
        records = load_payload_file(args.payload)
        summary = index.rebuild(records)
    except InvalidCorpus as exc:
        logger.error("Cannot index %s: %s", args.payload, exc)
        return EXIT_INVALID_CORPUS

    logger.info("Build summary", extra={"summary": summary.to_dict()})

    options = settings.default_query_options().model_copy(
        update={
            "max_results": args.max_results,
            "prefix_enabled": settings.prefix_enabled and not args.no_prefix,
            "strict_phrases": settings.strict_phrases and not args.soft_phrases,
            "highlight": args.highlight,
        }
    )
    response = index.search(args.query, options)
    sys.stdout.write(orjson.dumps(response.model_dump(mode="json"), option=orjson.OPT_INDENT_2).decode("utf-8"))
    sys.stdout.write("\n")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
