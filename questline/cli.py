"""
Command-line entry point for running the quest pipeline against a local store.

Examples:
    questline character hero-1 --name Aria --class Ranger --stat STR=14 --stat CHA=6
    questline generate hero-1
    questline template hero-1 tutorial_first_steps
    questline templates --stat WIS
    questline start <content-id>
    questline complete <content-id> <objective-id>
    questline narrate <content-id>
    questline compress
    questline expire
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from questline.config import settings
from questline.errors import QuestlineError
from questline.schemas import Character, StatName
from questline.services import Services, build_services
from questline.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def _parse_stats(pairs: List[str]) -> Dict[StatName, int]:
    stats: Dict[StatName, int] = {}
    for pair in pairs:
        name, _, value = pair.partition("=")
        try:
            stats[StatName(name.strip().upper())] = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(
                f"Invalid stat '{pair}', expected e.g. STR=12"
            )
    return stats


def _emit(payload: Any) -> None:
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump(mode="json")
    print(json.dumps(payload, indent=2, default=str))


async def _run(args: argparse.Namespace, services: Services) -> int:
    quests = services.quests

    if args.command == "character":
        character = Character(
            id=args.character_id,
            name=args.name,
            character_class=args.character_class,
            level=args.level,
            stats=_parse_stats(args.stat),
        )
        _emit(services.db.save_character(character))
    elif args.command == "generate":
        _emit(await quests.generate_quest(args.character_id))
    elif args.command == "template":
        _emit(quests.generate_from_template(args.character_id, args.template_name))
    elif args.command == "templates":
        templates = services.creator.list_templates(args.stat)
        _emit([t.model_dump(mode="json") for t in templates])
    elif args.command == "start":
        _emit(quests.start(args.content_id))
    elif args.command == "complete":
        _emit(quests.complete_objective(args.content_id, args.objective_id))
    elif args.command == "narrate":
        _emit(await quests.narrate_completion(args.content_id))
    elif args.command == "list":
        contents = quests.list_content(args.character_id, args.status)
        _emit([c.model_dump(mode="json") for c in contents])
    elif args.command == "compress":
        _emit(await services.memory.batch_compress(args.character or None))
    elif args.command == "expire":
        _emit({"expired": quests.expire_stale()})
    elif args.command == "metrics":
        _emit(
            {
                "generation": services.client.metrics.get_summary(),
                "cache": services.client.cache.stats(),
            }
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="questline",
        description="Quest generation, validation and memory pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    parser.add_argument("--log-file", default=settings.log_file)
    sub = parser.add_subparsers(dest="command", required=True)

    character = sub.add_parser("character", help="Create or update a character")
    character.add_argument("character_id")
    character.add_argument("--name", default="")
    character.add_argument("--class", dest="character_class", default="")
    character.add_argument("--level", type=int, default=1)
    character.add_argument(
        "--stat", action="append", default=[], help="Stat value, e.g. STR=12"
    )

    generate = sub.add_parser("generate", help="Generate a quest for a character")
    generate.add_argument("character_id")

    template = sub.add_parser("template", help="Offer a handwritten template quest")
    template.add_argument("character_id")
    template.add_argument("template_name")

    templates = sub.add_parser("templates", help="List available quest templates")
    templates.add_argument(
        "--stat", default=None, help="Only templates rewarding this stat"
    )

    start = sub.add_parser("start", help="Start available content")
    start.add_argument("content_id")

    complete = sub.add_parser("complete", help="Complete an objective")
    complete.add_argument("content_id")
    complete.add_argument("objective_id", type=int)

    narrate = sub.add_parser("narrate", help="Narrate a completed quest's outcome")
    narrate.add_argument("content_id")

    listing = sub.add_parser("list", help="List a character's content")
    listing.add_argument("character_id")
    listing.add_argument("--status", default=None)

    compress = sub.add_parser("compress", help="Compress old working memory")
    compress.add_argument(
        "--character", action="append", default=[], help="Limit to these characters"
    )

    sub.add_parser("expire", help="Expire stale unstarted content")
    sub.add_parser("metrics", help="Show generation metrics for this process")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        if args.command == "character":
            _parse_stats(args.stat)
        services = build_services()
        return asyncio.run(_run(args, services))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    except QuestlineError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
