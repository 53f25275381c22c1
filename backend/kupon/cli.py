"""Command-line interface for running scrapes and browsing coupons.

Usage:
    kupon run                      # one cycle over every enabled platform
    kupon run --platform shopee    # a single platform
    kupon run --schedule           # scheduler, until interrupted
    kupon status
    kupon list --platform tokopedia --limit 5
    kupon show --code HEMAT50
    kupon use --code HEMAT50
    kupon all
    kupon stats
    kupon test
    kupon seed
"""

import argparse
import asyncio
import sys
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import structlog

from kupon.config import settings
from kupon.core.exceptions import KuponException, NotFoundError
from kupon.core.logging import configure_logging
from kupon.models import Coupon
from kupon.scrapers.factory import AdapterFactory
from kupon.scrapers.orchestrator import ScrapeOrchestrator
from kupon.scrapers.register_adapters import register_all_adapters
from kupon.scrapers.scheduler import ScrapeScheduler
from kupon.services.persistence import CouponFilters, SQLAlchemyPersistenceGateway

logger = structlog.get_logger(__name__)

LINE = "=" * 60


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_discount(coupon: Coupon) -> str:
    value = coupon.discount_value or Decimal("0")
    if coupon.discount_type == "percentage":
        return f"{value:.0f}%"
    if coupon.discount_type in ("fixed", "cashback"):
        label = "Cashback " if coupon.discount_type == "cashback" else ""
        return f"{label}Rp {value:,.0f}".replace(",", ".")
    if coupon.discount_type == "shipping":
        return "Gratis ongkir"
    if coupon.discount_type == "bogo":
        return "Beli 1 gratis 1"
    return str(value)


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "Never"


def _print_coupon_list(coupons: List[Coupon]) -> None:
    current_platform = None
    for coupon in coupons:
        slug = coupon.platform.slug if coupon.platform else "?"
        if slug != current_platform:
            current_platform = slug
            print(f"\n--- {slug.upper()} ---")
        print(f"{coupon.coupon_code or '(no code)'} - {coupon.title}")
        print(f"  Discount: {_format_discount(coupon)} | Valid until: {_format_time(coupon.valid_until)}")
        print(f"  Source: {coupon.source_url}")


def _print_result(slug: str, result: Dict[str, Any]) -> None:
    if "error" in result:
        print(f"  ❌ {slug}: {result['error']}")
        return
    print(
        f"  ✅ {slug}: found {result.get('found', 0)}, saved {result.get('saved', 0)} "
        f"({result.get('created', 0)} new, {result.get('updated', 0)} updated), "
        f"errors {result.get('errors', 0)}, {result.get('duration_ms', 0)} ms"
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_run(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    if args.schedule:
        scheduler = ScrapeScheduler(orchestrator, settings=orchestrator.settings)
        scheduler.start(run_immediately=True)
        print(f"⏰ Scheduler running every {orchestrator.settings.SCRAPE_INTERVAL_MINUTES} min (Ctrl+C to stop)")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()
            await orchestrator.shutdown()
        return 0

    if args.platform:
        print(f"\n{LINE}\n  Scraping {args.platform.upper()}\n{LINE}")
        result = await orchestrator.run_platform(args.platform.lower())
        _print_result(args.platform.lower(), result)
        return 1 if "error" in result else 0

    print(f"\n{LINE}\n  Scrape cycle\n{LINE}")
    results = await orchestrator.run_cycle()
    if not results:
        print("⚠️  No platforms were scraped.")
        return 0
    for slug, result in results.items():
        _print_result(slug, result)

    summary = orchestrator.last_cycle or {}
    print(f"{LINE}")
    print(
        f"  Total: found {summary.get('found', 0)}, saved {summary.get('saved', 0)}, "
        f"expired {summary.get('expired', 0)}, {summary.get('duration_ms', 0)} ms"
    )
    return 1 if all("error" in r for r in results.values()) else 0


async def cmd_status(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    status = orchestrator.get_status()
    metrics = await gateway.get_metrics()
    healthy = await gateway.check_health()

    print(f"\n{LINE}\n  Kupon scraper status\n{LINE}")
    print(f"  Version: {orchestrator.settings.VERSION} ({orchestrator.settings.ENVIRONMENT})")
    print(f"  Database: {'ok' if healthy else 'unreachable'}")
    print(f"  Max concurrent scrapers: {status['max_concurrent']}")
    print("\n  Platforms:")
    for platform in status["platforms"]:
        flag = "on " if platform["enabled"] else "off"
        print(f"    [{flag}] {platform['slug']:<10} priority {platform['priority']}")

    coupons = metrics["coupons"]
    print(f"\n  Coupons: {coupons.get('total', 0)} total, {coupons.get('active', 0)} active, {coupons.get('expired', 0)} expired")
    print(f"  Sessions (last {metrics['window_hours']}h):")
    if not metrics["sessions"]:
        print("    none")
    for session_status, info in sorted(metrics["sessions"].items()):
        print(f"    {session_status}: {info['count']} (avg {info['avg_duration_ms'] or 0} ms)")
    return 0 if healthy else 1


async def cmd_list(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    platform = None if args.platform == "all" else args.platform.lower()
    coupons, total = await gateway.query_coupons(
        CouponFilters(platform=platform, has_code=True, limit=args.limit, sort="scraped_at")
    )
    print(f"\n🎫 Active coupons ({args.platform}): showing {len(coupons)} of {total}")
    if not coupons:
        print("No coupons found.")
        return 0
    _print_coupon_list(coupons)
    return 0


async def cmd_all(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    coupons, total = await gateway.query_coupons(CouponFilters(has_code=True, limit=args.limit, sort="scraped_at"))
    print(f"\n🎫 All available coupons with codes: showing {len(coupons)} of {total}")
    if not coupons:
        print("No coupons with codes found.")
        return 0
    _print_coupon_list(coupons)
    return 0


async def _find_coupon(gateway: SQLAlchemyPersistenceGateway, code: str) -> Coupon:
    coupon = await gateway.get_coupon_by_code(code)
    if coupon is None:
        raise NotFoundError("Coupon", code)
    return coupon


async def cmd_show(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    coupon = await _find_coupon(gateway, args.code)
    print(f"\n🔍 Coupon details: {args.code}\n")
    print(f"Title: {coupon.title}")
    print(f"Code: {coupon.coupon_code}")
    print(f"Platform: {coupon.platform.name}")
    print(f"Discount: {_format_discount(coupon)}")
    if coupon.description:
        print(f"Description: {coupon.description}")
    print(f"Status: {coupon.status}")
    print(f"Source: {coupon.source_url}")
    print(f"Valid until: {_format_time(coupon.valid_until)}")
    print(f"Last scraped: {_format_time(coupon.scraped_at)}")
    return 0


async def cmd_use(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    coupon = await _find_coupon(gateway, args.code)
    name = coupon.platform.name
    print(f"\n🛒 How to use coupon: {coupon.coupon_code}\n")
    print(f"Platform: {name}")
    print(f"Discount: {_format_discount(coupon)}")
    if coupon.status != "active":
        print(f"⚠️  This coupon is {coupon.status} and may no longer work.")
    print("\nSteps to use this coupon:")
    steps = [
        f"Visit the {name} website or app",
        "Browse and add products to your cart",
        "Go to the checkout/cart page",
        'Look for the "Voucher", "Promo Code" or "Kupon" field',
        f"Enter this code: {coupon.coupon_code}",
        'Click "Apply" or "Gunakan"',
        "Verify the discount is applied",
        "Complete your purchase",
    ]
    for index, step in enumerate(steps, 1):
        print(f"{index}. {step}")
    print(f"\nOriginal source: {coupon.source_url}")
    return 0


async def cmd_stats(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    print("\n📊 Coupon statistics\n")
    for stat in await gateway.get_platform_stats():
        print(f"{stat['name']}:")
        print(f"  Total coupons: {stat['total']}")
        print(f"  Active coupons: {stat['active']}")
        print(f"  Coupons with codes: {stat['with_code']}")
        print(f"  Last scraped: {_format_time(stat['last_scraped'])}")
        print()
    return 0


async def cmd_test(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    print(f"\n{LINE}\n  Platform connectivity\n{LINE}")
    results = await orchestrator.test_platforms()
    for slug, ok in results.items():
        print(f"  {'✅' if ok else '❌'} {slug}")
    passed = sum(results.values())
    print(f"{LINE}\n  {passed}/{len(results)} platforms reachable")
    return 0 if passed == len(results) else 1


async def cmd_seed(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    # seeding already ran during setup; report what is there
    stats = await gateway.get_platform_stats()
    print(f"✅ {len(stats)} platforms seeded: {', '.join(s['platform'] for s in stats)}")
    return 0


COMMANDS = {
    "run": cmd_run,
    "status": cmd_status,
    "list": cmd_list,
    "all": cmd_all,
    "show": cmd_show,
    "use": cmd_use,
    "stats": cmd_stats,
    "test": cmd_test,
    "seed": cmd_seed,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kupon",
        description="Scrape coupons from Indonesian e-commerce platforms and browse the results",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kupon run --platform shopee
  kupon list --platform tokopedia --limit 5
  kupon use --code HEMAT50
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a scrape cycle or a single platform")
    run.add_argument("-p", "--platform", help="Platform slug (e.g. 'shopee'); default: all enabled")
    run.add_argument("-s", "--schedule", action="store_true", help="Keep running on the configured interval")

    subparsers.add_parser("status", help="Show scraper and database status")

    list_cmd = subparsers.add_parser("list", help="List active coupons with codes")
    list_cmd.add_argument("-p", "--platform", default="all", help="Platform slug or 'all' (default: all)")
    list_cmd.add_argument("-l", "--limit", type=int, default=10, help="Maximum coupons to show (default: 10)")

    all_cmd = subparsers.add_parser("all", help="List coupons with codes across all platforms")
    all_cmd.add_argument("-l", "--limit", type=int, default=20, help="Maximum coupons to show (default: 20)")

    show = subparsers.add_parser("show", help="Show one coupon")
    show.add_argument("-c", "--code", required=True, help="Coupon code")

    use = subparsers.add_parser("use", help="Explain how to redeem a coupon")
    use.add_argument("-c", "--code", required=True, help="Coupon code")

    subparsers.add_parser("stats", help="Per-platform coupon statistics")
    subparsers.add_parser("test", help="Check that every enabled platform is reachable")
    subparsers.add_parser("seed", help="Create tables and seed platform rows")

    return parser


async def dispatch(args, gateway: SQLAlchemyPersistenceGateway, orchestrator: ScrapeOrchestrator) -> int:
    """Run the selected command; library errors become exit status 1."""
    try:
        return await COMMANDS[args.command](args, gateway, orchestrator)
    except NotFoundError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    except KuponException as e:
        logger.error("command_failed", command=args.command, error=e.message)
        print(f"❌ Error: {e.message}", file=sys.stderr)
        return 1


async def _run(args) -> int:
    # Imported here so `kupon --help` does not build the engine
    from kupon.db.seed import seed_platforms
    from kupon.db.session import async_session_factory, create_tables, engine

    factory: AdapterFactory = register_all_adapters()
    try:
        await create_tables(engine)
        await seed_platforms(async_session_factory, factory.get_configs())

        gateway = SQLAlchemyPersistenceGateway(async_session_factory)
        orchestrator = ScrapeOrchestrator(gateway, factory)
        return await dispatch(args, gateway, orchestrator)
    finally:
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments and run the command. Returns the process exit status."""
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("\n👋 Stopped")
        return 0
    except Exception as e:
        logger.error("cli_failed", command=args.command, error=str(e), exc_info=True)
        print(f"❌ Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
