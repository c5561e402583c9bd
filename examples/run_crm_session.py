"""Example session against the in-memory CRM: pipeline moves and dashboard."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from pprint import pprint
import sys

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from mini_crm.config import ServiceConfig
from mini_crm.models import StageDirection
from mini_crm.pages import DashboardPage, DealsPage
from mini_crm.workspace import CrmServices

load_dotenv()


async def run_session(services: CrmServices) -> None:
    deals_page = DealsPage(services)
    await deals_page.load()

    deals_page.open_create()
    deals_page.set_field("title", "Big Sale")
    deals_page.set_field("value", "5000")
    deals_page.set_field("probability", 20)
    created = await deals_page.submit()
    print(created.message)

    for _ in range(2):
        moved = await deals_page.move_stage(created.record.id, StageDirection.FORWARD)
        print(moved.message)

    pprint({column.name: [deal.title for deal in column.deals] for column in deals_page.board})

    dashboard = DashboardPage(services)
    await dashboard.load()
    pprint(dashboard.metrics)
    pprint(dashboard.stage_counts)
    for entry in dashboard.activity_feed:
        print(f"{entry.activity.date:%Y-%m-%d} {entry.headline} ({entry.contact_name})")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--instant", action="store_true", help="Disable simulated latency.")
    parser.add_argument("--verbose", action="store_true", help="Log every service mutation.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = ServiceConfig.instant() if args.instant else ServiceConfig.from_env()
    asyncio.run(run_session(CrmServices.from_seed(config)))


if __name__ == "__main__":
    main()
