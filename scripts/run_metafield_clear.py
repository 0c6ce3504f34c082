#!/usr/bin/env python3
"""CLI entry point for bulk metafield deletion.

Usage:
    # Delete custom.legacy_note from every product
    python scripts/run_metafield_clear.py --resource-type product \
        --namespace custom --key legacy_note

    # Delete it from the owners listed in a file (GIDs or handles)
    python scripts/run_metafield_clear.py --resource-type product \
        --namespace custom --key legacy_note --ids-file handles.csv

Deleted values are captured in the audit log and can be restored.
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
from bulktag_core.driver import MetafieldClearDriver, RunPhase
from bulktag_core.errors import BulkTagError
from bulktag_core.metafields.runner import MetafieldBatchRunner
from bulktag_core.shopify.admin_client import ShopifyAdminClient
from bulktag_core.shopify.fetcher import PagedResourceFetcher
from bulktag_core.shopify.lookup import fetch_shop_email, resolve_owner_id


logger = logging.getLogger("run_metafield_clear")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


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
            driver = MetafieldClearDriver(
                MetafieldBatchRunner(client, fetcher=fetcher),
                AuditLogger(db_conn),
                await fetch_shop_email(client),
                redis=redis,
                shop_domain=settings.shop_domain,
                page_delay=config.page_delay_seconds(),
                max_pages=config.max_pages(),
            )

            if args.ids_file:
                owner_ids = []
                for value in await read_id_list(args.ids_file):
                    owner_id = await resolve_owner_id(client, args.resource_type, value)
                    if owner_id is None:
                        logger.warning("Skipping '%s': no %s found", value, args.resource_type)
                        continue
                    owner_ids.append(owner_id)

                asyncio.get_running_loop().add_signal_handler(signal.SIGINT, driver.cancel)
                state = await driver.clear_specific(
                    args.resource_type, owner_ids, args.namespace, args.key
                )
            else:
                asyncio.get_running_loop().add_signal_handler(signal.SIGINT, driver.cancel)
                state = await driver.clear_global(
                    args.resource_type, args.namespace, args.key
                )

            if args.output:
                await write_results_csv(args.output, state.results)

            succeeded = sum(1 for result in state.results if result.success)
            print(
                f"{driver.phase.value}: {succeeded} of {state.total_processed} "
                f"{args.namespace}.{args.key} metafields deleted"
            )
            return 0 if driver.phase == RunPhase.COMPLETE else 1

        except BulkTagError as exc:
            logger.error("Metafield clear failed: %s", exc)
            return 1
        finally:
            db_conn.close()
            await redis.aclose()


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Bulk metafield deletion")
    parser.add_argument("--resource-type", required=True, help="Resource kind")
    parser.add_argument("--namespace", required=True, help="Metafield namespace")
    parser.add_argument("--key", required=True, help="Metafield key")
    parser.add_argument(
        "--ids-file",
        help="CSV with one owner GID or lookup value per line",
    )
    parser.add_argument(
        "--output",
        help="Write per-item results to this CSV file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    return await run(args)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
