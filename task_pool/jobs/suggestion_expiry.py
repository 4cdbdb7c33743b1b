"""
Suggestion Expiry Job: retire AI suggestions nobody reviewed in time.

Runs as a scheduled job (cron or similar). Pending suggestions whose
expires_at has passed move to expired in a single conditional UPDATE, so a
review racing the job either wins (and the job skips the row) or gets 409.

Typical cron schedule: 0 * * * * (hourly)
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ..core.config import get_settings
from ..models import SuggestionStatus, TaskAISuggestion
from ..services.suggestions import expire_old_suggestions

logger = logging.getLogger(__name__)


async def send_alert(title: str, message: str, details: dict | None = None) -> None:
    """Log a job failure and forward it to ALERT_WEBHOOK_URL when configured."""
    logger.error(f"[CRON ALERT] {title}: {message} | Details: {details or {}}")

    webhook_url = os.getenv("ALERT_WEBHOOK_URL")
    if not webhook_url:
        return

    payload = {
        "title": title,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": "task-pool-cron",
        "details": details or {},
    }
    try:
        async with httpx.AsyncClient() as client:
            await client.post(webhook_url, json=payload, timeout=10)
    except httpx.HTTPError as e:
        logger.error(f"Failed to send webhook alert: {e}")


async def run_expiry_job(
    database_url: str,
    now: datetime | None = None,
    dry_run: bool = False,
    organization_id: UUID | None = None,
) -> dict[str, Any]:
    """
    Expire overdue pending suggestions.

    Args:
        database_url: Async SQLAlchemy connection string
        now: Reference time (defaults to the current UTC time)
        dry_run: Count what would expire without changing anything
        organization_id: Limit the run to one tenant (all tenants when None)

    Returns:
        Job result summary
    """
    start_time = datetime.now(timezone.utc)
    now = now or start_time
    logger.info(f"Starting suggestion expiry job at {start_time.isoformat()}")

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    results: dict[str, Any] = {
        "started_at": start_time.isoformat(),
        "completed_at": None,
        "expired_count": 0,
        "dry_run": dry_run,
        "organization_id": str(organization_id) if organization_id else None,
    }

    try:
        async with session_factory() as session:
            async with session.begin():
                if dry_run:
                    query = select(func.count()).select_from(TaskAISuggestion).where(
                        TaskAISuggestion.status == SuggestionStatus.PENDING,
                        TaskAISuggestion.expires_at.is_not(None),
                        TaskAISuggestion.expires_at < now,
                    )
                    if organization_id:
                        query = query.where(TaskAISuggestion.organization_id == organization_id)
                    results["expired_count"] = (await session.execute(query)).scalar_one()
                else:
                    results["expired_count"] = await expire_old_suggestions(
                        session, now=now, organization_id=organization_id
                    )

    except Exception as e:
        await send_alert(
            title="Suggestion Expiry Job Failed",
            message=str(e),
            details={"started_at": results["started_at"]},
        )
        raise

    finally:
        await engine.dispose()

    end_time = datetime.now(timezone.utc)
    results["completed_at"] = end_time.isoformat()
    results["duration_seconds"] = (end_time - start_time).total_seconds()

    logger.info(
        f"Suggestion expiry job completed in {results['duration_seconds']:.2f}s: "
        f"{results['expired_count']} {'would expire' if dry_run else 'expired'}"
    )
    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for the suggestion expiry job."""
    import argparse
    import sys

    parser = argparse.ArgumentParser(description="Expire unreviewed AI task suggestions")
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="PostgreSQL connection string",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log what would be done without making changes",
    )
    parser.add_argument(
        "--organization-id",
        type=UUID,
        default=get_settings().default_organization_id,
        help="Only expire suggestions for this organization (default: DEFAULT_ORGANIZATION_ID, else all)",
    )

    args = parser.parse_args()

    if not args.database_url:
        print("Error: DATABASE_URL is required")
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    database_url = args.database_url.replace("postgresql://", "postgresql+asyncpg://")
    try:
        results = asyncio.run(
            run_expiry_job(
                database_url,
                dry_run=args.dry_run,
                organization_id=args.organization_id,
            )
        )
        print(f"Job completed: {results}")
    except Exception as e:
        print(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
