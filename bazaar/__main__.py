"""
bazaar.__main__ — Entry point for ``python -m bazaar``
=======================================================

Wiring:
1. Load .env (secrets: DATABASE_URL).
2. Load config.yaml (pool sizing, timeouts, domain knobs).
3. Open the DataContext and ensure tables exist.
4. Seed demo data (idempotent).
5. Print headline counts and close.

Run with::

    python -m bazaar
    python -m bazaar --no-seed
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from bazaar.config import load_config
from bazaar.database.engine import DataContext
from bazaar.database.seed import seed_demo_data
from bazaar.services.user_service import get_app_statistics

logger = logging.getLogger("bazaar")


def main(argv: list[str] | None = None) -> int:
    """Bootstrap the database for local development."""
    parser = argparse.ArgumentParser(prog="bazaar", description=__doc__.splitlines()[1])
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    parser.add_argument("--no-seed", action="store_true", help="skip demo data")
    args = parser.parse_args(argv)

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config(args.config, required=False)
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )

    # 3. Database.
    try:
        ctx = DataContext.from_env(cfg)
    except RuntimeError as exc:
        logger.critical("%s", exc)
        return 1

    with ctx:
        ctx.create_schema()

        # 4. Demo data.
        if not args.no_seed:
            seed_demo_data(ctx)

        # 5. Report.
        stats = get_app_statistics(ctx)
        logger.info(
            "Ready — %d volunteers, %d organizations, %d opportunities",
            stats.total_volunteers, stats.total_organizations, stats.total_opportunities,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
