"""Command line entry point.

Usage:
    payroll-workflow serve [--host H] [--port P] [--reload]
    payroll-workflow init-db
    payroll-workflow calculate-month 2024-03
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import uvicorn

from payroll_workflow.config import configure_logging, get_settings
from payroll_workflow.database import dispose_db, init_db
from payroll_workflow.models import Base
from payroll_workflow.services import build_services


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="payroll-workflow",
        description="Approval workflow and payroll engine",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    serve.add_argument("--reload", action="store_true", default=settings.debug)

    subparsers.add_parser("init-db", help="Create all tables")

    calculate = subparsers.add_parser(
        "calculate-month", help="Calculate payroll for every eligible employee"
    )
    calculate.add_argument("salary_month", help="Target month as YYYY-MM")
    return parser


async def init_schema() -> None:
    engine, _ = init_db()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await dispose_db()


async def calculate_month(salary_month: str) -> dict:
    """Run the batch calculation in one unit of work and return its summary."""
    _, factory = init_db()
    try:
        async with factory() as session:
            services = await build_services(session)
            async with services.unit_of_work():
                result = await services.payroll.calculate_all(salary_month)
    finally:
        await dispose_db()
    return {
        "salary_month": result.salary_month,
        "calculated": result.calculated,
        "failed": {str(k): v for k, v in result.failed.items()},
    }


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "serve"
    settings = get_settings()

    if command == "serve":
        uvicorn.run(
            "payroll_workflow.api.app:app",
            host=getattr(args, "host", settings.host),
            port=getattr(args, "port", settings.port),
            reload=getattr(args, "reload", settings.debug),
            log_level=settings.log_level.lower(),
        )
        return 0

    configure_logging()
    if command == "init-db":
        asyncio.run(init_schema())
        print("Schema created")
        return 0

    summary = asyncio.run(calculate_month(args.salary_month))
    print(json.dumps(summary, indent=2))
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
