"""
docgen command line.

    python -m docgen serve [--host 0.0.0.0] [--port 3000] [--reload]
    python -m docgen crawl https://docs.example.com [--output docs.json]
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path

from docgen.core.config import get_settings
from docgen.core.exceptions import DocgenError
from docgen.core.logging_config import setup_logging
from docgen.core.validation import is_valid_url

logger = logging.getLogger("docgen.cli")


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "docgen.gateway.app:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


async def _crawl(url: str) -> list:
    from docgen.agent import crawl_site
    from docgen.gateway.dependencies import (
        get_embedder_dependency,
        get_job_queue,
        get_llm,
        get_store,
        shutdown_all,
    )

    try:
        return await crawl_site(
            url,
            llm=get_llm(),
            queue=get_job_queue(),
            store=get_store(),
            embedder=get_embedder_dependency(),
        )
    finally:
        await shutdown_all()


def cmd_crawl(args: argparse.Namespace) -> int:
    if not is_valid_url(args.url):
        print(f"Invalid URL format: {args.url}")
        return 2

    settings = get_settings()
    setup_logging(
        level=settings.log_level, log_to_console=args.verbose, service_name="cli", log_dir=settings.log_dir
    )
    try:
        data = asyncio.run(_crawl(args.url))
    except DocgenError as e:
        logger.error(f"[CLI] Crawl failed: {e.message}")
        print(f"Crawl failed: {e.message}")
        return 1

    payload = json.dumps({"url": args.url, "data": data}, indent=2)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"Wrote {len(data)} extraction results to {args.output}")
    else:
        print(payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docgen", description="Crawl API documentation into a searchable knowledge base.")
    sub = parser.add_subparsers(dest="command")

    serve_parser = sub.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")
    serve_parser.set_defaults(func=cmd_serve)

    crawl_parser = sub.add_parser("crawl", help="Crawl one documentation site and print the extracted curl docs")
    crawl_parser.add_argument("url")
    crawl_parser.add_argument("--output", "-o", default=None, help="Write the JSON result to this file")
    crawl_parser.add_argument("--verbose", "-v", action="store_true", help="Also log to the console")
    crawl_parser.set_defaults(func=cmd_crawl)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
