import argparse
import asyncio
import json

from storefront.core.config import settings
from storefront.core.redis_client import close_redis
from storefront.db.session import SessionLocal
from storefront import seeds as app_seeds
from storefront.services.intent_store import PendingIntentStore


async def _seed_data() -> None:
    async with SessionLocal() as session:
        created = await app_seeds.seed_catalog(session)
    print(f"Seeded {created} products")


async def _show_intent(session_id: str) -> None:
    try:
        intent = await PendingIntentStore(session_id).load()
    finally:
        await close_redis()
    if intent is None:
        print("No pending intent")
        return
    print(json.dumps(intent.model_dump(mode="json"), indent=2))


async def _clear_intent(session_id: str) -> None:
    try:
        await PendingIntentStore(session_id).clear()
    finally:
        await close_redis()
    print(f"Cleared pending intent for {session_id}")


def _require_redis() -> None:
    if not (settings.redis_url or "").strip():
        raise SystemExit("REDIS_URL is not configured; pending intents only live inside the API process")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront management commands")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("seed-data", help="Seed the demo catalog")
    show = subparsers.add_parser("show-intent", help="Print the pending intent of a guest session")
    show.add_argument("session_id")
    clear = subparsers.add_parser("clear-intent", help="Drop the pending intent of a guest session")
    clear.add_argument("session_id")
    return parser


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "seed-data":
        asyncio.run(_seed_data())
        return True
    if args.command == "show-intent":
        _require_redis()
        asyncio.run(_show_intent(args.session_id))
        return True
    if args.command == "clear-intent":
        _require_redis()
        asyncio.run(_clear_intent(args.session_id))
        return True
    return False


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _run_cli_command(args):
        parser.print_help()


if __name__ == "__main__":
    main()
