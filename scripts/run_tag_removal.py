#!/usr/bin/env python3
"""CLI entry point for bulk tag removal.

Usage:
    # Preview tags of products containing "sale" or "clearance"
    python scripts/run_tag_removal.py --resource-type product \
        --condition sale --condition OR:clearance --dry-run

    # Remove matching tags from every product (asks for confirmation)
    python scripts/run_tag_removal.py --resource-type product --condition sale

    # Remove given tags from the ids listed in a file
    python scripts/run_tag_removal.py --resource-type customer \
        --tags vip,legacy --ids-file ids.csv --output results.csv

Ctrl+C stops the run before its next round trip.
"""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import aiohttp
from redis.asyncio import Redis

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bulktag_core import config
from bulktag_core.audit.logger import AuditLogger
from bulktag_core.audit.schema import connect
from bulktag_core.csv_io import read_id_list, write_results_csv
from bulktag_core.driver import RunPhase, TagRemovalDriver
from bulktag_core.errors import BulkTagError
from bulktag_core.schemas.bulk_ops import MatchMode, TagCondition, TagOperator
from bulktag_core.shopify.admin_client import ShopifyAdminClient
from bulktag_core.shopify.fetcher import PagedResourceFetcher
from bulktag_core.shopify.lookup import fetch_shop_email
from bulktag_core.tagging.runner import TagBatchRunner


logger = logging.getLogger("run_tag_removal")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_condition(raw: str) -> TagCondition:
    """`keyword`, `AND:keyword` or `OR:keyword`."""
    operator, sep, keyword = raw.partition(":")
    if sep and operator.upper() in (TagOperator.AND.value, TagOperator.OR.value):
        return TagCondition(tag=keyword, operator=TagOperator(operator.upper()))
    return TagCondition(tag=raw)


def confirm(prompt: str) -> bool:
    return input(f"{prompt} [y/N] ").strip().lower() in ("y", "yes")


async def run(args: argparse.Namespace) -> int:
    settings = config.shopify_settings()
    timeout = aiohttp.ClientTimeout(total=300, connect=30)

    async with aiohttp.ClientSession(timeout=timeout) as session:
        redis = Redis.from_url(config.redis_url(), decode_responses=False)
        db_conn = connect(config.audit_db_path())
        try:
            client = ShopifyAdminClient(
                shop_domain=settings.shop_domain,
                admin_access_token=settings.access_token,
                api_version=settings.api_version,
                session=session,
            )
            fetcher = PagedResourceFetcher(client, max_pages=config.max_pages())
            driver = TagRemovalDriver(
                TagBatchRunner(client, fetcher=fetcher),
                AuditLogger(db_conn),
                await fetch_shop_email(client),
                redis=redis,
                shop_domain=settings.shop_domain,
                page_delay=config.page_delay_seconds(),
                max_pages=config.max_pages(),
            )

            conditions = [parse_condition(raw) for raw in args.condition]
            driver.set_scope(args.resource_type, conditions, args.match_mode)

            if args.tags:
                tags = [tag for tag in args.tags.split(",") if tag.strip()]
            else:
                tags = await driver.fetch_tags()
                if not tags:
                    print("No tags found for the given conditions")
                    return 0
                print(f"Matched {len(tags)} tags:")
                for tag in tags:
                    print(f"  {tag}")

            if args.dry_run:
                return 0

            selected = driver.select_tags(tags)
            scope = f"ids in {args.ids_file}" if args.ids_file else f"every {args.resource_type}"
            if not args.yes and not confirm(f"Remove {len(selected)} tags from {scope}?"):
                print("Aborted")
                return 1

            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, driver.cancel)

            if args.ids_file:
                state = await driver.remove_specific(await read_id_list(args.ids_file))
            else:
                state = await driver.remove_global()

            if args.output:
                await write_results_csv(args.output, state.results)

            succeeded = sum(1 for result in state.results if result.success)
            print(
                f"{driver.phase.value}: {succeeded} of {state.total_processed} "
                "items updated"
            )
            return 0 if driver.phase == RunPhase.COMPLETE else 1

        except BulkTagError as exc:
            logger.error("Tag removal failed: %s", exc)
            return 1
        finally:
            db_conn.close()
            await redis.aclose()


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Bulk tag removal")
    parser.add_argument(
        "--resource-type",
        required=True,
        help="Taggable resource kind (product, customer, order, article)",
    )
    parser.add_argument(
        "--condition",
        action="append",
        default=[],
        help="Keyword condition, optionally prefixed with AND: or OR: (repeatable)",
    )
    parser.add_argument(
        "--match-mode",
        choices=[mode.value for mode in MatchMode],
        default=MatchMode.CONTAIN.value,
        help="How keywords are compared with tags",
    )
    parser.add_argument(
        "--tags",
        help="Comma-separated tags to remove (skips fetching and matching)",
    )
    parser.add_argument(
        "--ids-file",
        help="CSV with one id per line; removes from these ids only",
    )
    parser.add_argument(
        "--output",
        help="Write per-item results to this CSV file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list matching tags",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.tags and not args.condition:
        parser.error("either --tags or at least one --condition is required")

    return await run(args)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
