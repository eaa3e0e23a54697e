"""Command-line entry point: ``papers text`` and ``papers work``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from papers.config import TextConfig
from papers.datalab import DatalabClient
from papers.exceptions import MissingApiKeyError, NoPdfFoundError, PapersError
from papers.openalex import OpenAlexClient, work_get
from papers.schemas import ProcessingMode, WorkTextResult
from papers.text import work_text
from papers.zotero import ZoteroClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="papers", description="Query OpenAlex and extract full text of scholarly works."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    text = commands.add_parser(
        "text",
        help="Extract full text from a work's PDF (Zotero, open-access URLs, OpenAlex content API)",
    )
    text.add_argument("id", help="Work ID (OpenAlex ID, DOI, pmid:, pmcid:) or a search query")
    text.add_argument("--json", action="store_true", help="Output the result as JSON")
    text.add_argument(
        "--advanced",
        choices=[mode.value for mode in ProcessingMode],
        metavar="QUALITY",
        help="Use DataLab Marker for markdown extraction (fast, balanced, accurate). "
        "Requires DATALAB_API_KEY.",
    )
    text.add_argument("--timeout", type=float, help="Give up after this many seconds")
    text.add_argument(
        "--no-cache", action="store_true", help="Do not read or write cached DataLab output"
    )

    work = commands.add_parser("work", help="Show a work's metadata")
    work.add_argument("id", help="Work ID (OpenAlex ID, DOI, pmid:, pmcid:) or a search query")
    work.add_argument("--json", action="store_true", help="Output raw JSON")
    return parser


def format_work_text(result: WorkTextResult) -> str:
    lines = [f"Work: {result.work_id}"]
    if result.title:
        lines.append(f"Title: {result.title}")
    if result.doi:
        lines.append(f"DOI: {result.doi}")
    lines.append(f"Source: {result.source.type}")
    lines.append("")
    lines.append(result.text)
    return "\n".join(lines) + "\n"


async def _run_text(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {"timeout": args.timeout, "use_extraction_cache": not args.no_cache}
    if args.advanced:
        overrides["processing_mode"] = ProcessingMode(args.advanced)
    config = TextConfig.from_env(**overrides)

    try:
        zotero = ZoteroClient.from_env()
    except MissingApiKeyError:
        logger.debug("Zotero credentials not set; skipping Zotero sources")
        zotero = None

    datalab = None
    if args.advanced:
        try:
            datalab = DatalabClient.from_env()
        except MissingApiKeyError as exc:
            logger.warning("%s; falling back to local extraction", exc)

    openalex = await asyncio.to_thread(OpenAlexClient.from_env)
    try:
        result = await work_text(openalex, args.id, zotero, datalab, config=config)
    finally:
        await openalex.close()
        if zotero is not None:
            await zotero.close()
        if datalab is not None:
            await datalab.close()

    if args.json:
        sys.stdout.write(result.model_dump_json(indent=2) + "\n")
    else:
        sys.stdout.write(format_work_text(result))
    return 0


async def _run_work(args: argparse.Namespace) -> int:
    openalex = await asyncio.to_thread(OpenAlexClient.from_env)
    async with openalex:
        work = await work_get(openalex, args.id)
    if args.json:
        sys.stdout.write(work.model_dump_json(indent=2) + "\n")
        return 0
    sys.stdout.write(f"{work.id}\n")
    if work.label:
        sys.stdout.write(f"Title: {work.label}\n")
    if work.doi:
        sys.stdout.write(f"DOI: {work.doi}\n")
    if work.publication_year:
        sys.stdout.write(f"Year: {work.publication_year}\n")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    runner = _run_text if args.command == "text" else _run_work
    try:
        return asyncio.run(runner(args))
    except NoPdfFoundError as exc:
        sys.stderr.write(f"error: No PDF found for {exc.title or exc.work_id}\n")
    except PapersError as exc:
        sys.stderr.write(f"error: {exc}\n")
    return 1


if __name__ == "__main__":
    sys.exit(main())
