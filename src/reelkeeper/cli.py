"""Command-line entry point for Reelkeeper."""

import argparse
import sys
from typing import Callable, Optional

import psycopg2
from prometheus_client import generate_latest

from reelkeeper.config import load_config
from reelkeeper.errors import ReelKeeperError
from reelkeeper.models.reel import Reel
from reelkeeper.services.pipeline import ReelPipeline, SelectionPrompt
from reelkeeper.services.session import Session
from reelkeeper.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

InputFn = Callable[[str], str]


def _open_session() -> Session:
    config = load_config()
    configure_logging("reelkeeper", level=config.log_level, fmt=config.log_format)
    return Session.from_config(config)


def _format_reel(reel: Reel) -> str:
    line = f"[{reel.id}] {reel.category:<14} {reel.caption}"
    if reel.url != reel.caption:
        line += f"\n    {reel.url}"
    if reel.notes:
        line += f"\n    notes: {reel.notes}"
    line += f"\n    added {reel.date_added} {reel.time_added}".rstrip()
    return line


def choose_category(prompt: SelectionPrompt, input_fn: InputFn = input) -> Optional[str]:
    """Ask the user to pick a category for a pending reel.

    Offers the primary suggestion and the alternatives by number; any other text is
    taken as a category name. An empty answer cancels.

    Args:
        prompt: Selection prompt from the pipeline
        input_fn: Function used to read the answer

    Returns:
        Chosen category name, or None to cancel
    """
    options: list[str] = []
    for name in (prompt.primary, *prompt.suggestions):
        if name and name not in options:
            options.append(name)

    if prompt.manual:
        print("Automatic classification is unavailable, pick a category manually.")
    elif prompt.degraded:
        print("The classifier could not help with this one, showing default suggestions.")
    for index, name in enumerate(options, start=1):
        marker = " (recommended)" if index == 1 and name == prompt.primary else ""
        print(f"  {index}. {name}{marker}")
    print(f"Categories: {', '.join(prompt.categories)}")

    answer = input_fn("Category number or name (empty to cancel): ").strip()
    if not answer:
        return None
    if answer.isdigit() and 1 <= int(answer) <= len(options):
        return options[int(answer) - 1]
    return answer


def cmd_share(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    pipeline = ReelPipeline(session)
    prompt = pipeline.handle_shared(args.text, classify=not args.category)
    print(f"Received: {prompt.pending.url}")

    chosen = args.category or choose_category(prompt, input_fn)
    if not chosen:
        pipeline.cancel()
        print("Cancelled.")
        return 0

    reel = pipeline.save_selection(chosen, notes=args.notes or "")
    print(f'Saved reel {reel.id} as "{reel.category}".')
    return 0


def cmd_classify(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    pipeline = ReelPipeline(session)
    category = pipeline.classify_manual(args.text)
    print(category)
    if not args.save:
        return 0

    answer = input_fn(f'Save as "{category}"? [Y/n or another category]: ').strip()
    if answer.lower() in ("n", "no"):
        print("Not saved.")
        return 0
    if answer and answer.lower() not in ("y", "yes"):
        category = answer
    reel = pipeline.save_manual(args.text, category, url=args.url, notes=args.notes or "")
    print(f'Saved reel {reel.id} as "{reel.category}".')
    return 0


def cmd_save(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    pipeline = ReelPipeline(session)
    reel = pipeline.save_manual(args.caption, args.category, url=args.url, notes=args.notes or "")
    print(f'Saved reel {reel.id} as "{reel.category}".')
    return 0


def cmd_list(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    view = session.reels.query(search=args.search, category=args.category)
    reels = list(view)
    for reel in reels:
        print(_format_reel(reel))
    print(f"Showing {len(reels)} of {len(session.reels)} reels")
    return 0


def cmd_delete(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    if session.reels.get(args.reel_id) is None:
        print(f"No reel with id {args.reel_id}.")
        return 1
    session.reels.delete(args.reel_id)
    print(f"Deleted reel {args.reel_id}.")
    return 0


def cmd_categories(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    registry = session.categories
    if args.action == "add":
        name = registry.add(args.name)
        print(f'Category "{name}" added.')
    elif args.action == "remove":
        if registry.is_builtin(args.name):
            print(f'"{args.name.strip()}" is a built-in category and cannot be removed.')
            return 1
        registry.remove(args.name)
        print(f'Category "{args.name.strip()}" removed. Reels keep their category.')
    else:
        counts = session.reels.counts_by_category()
        custom = set(registry.custom())
        for name in registry.list_all():
            suffix = " (custom)" if name in custom else ""
            print(f"{name}{suffix} ({counts.get(name, 0)})")
    return 0


def cmd_key(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    credentials = session.credentials
    if args.action == "set":
        credentials.set(args.value or input_fn("Gemini API key: "))
        print("API key saved.")
    elif args.action == "clear":
        credentials.clear()
        print("API key removed.")
    else:
        masked = credentials.masked()
        print(f"API key: {masked}" if masked else "No API key set.")
    return 0


def cmd_settings(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    if args.auto_classify is not None:
        session.settings.set_auto_classify(args.auto_classify == "on")
    state = "on" if session.settings.auto_classify else "off"
    print(f"auto-classify: {state}")
    return 0


def cmd_stats(session: Session, args: argparse.Namespace, input_fn: InputFn = input) -> int:
    counts = session.reels.counts_by_category()
    for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        print(f"{name}: {count}")
    print(f"Total: {len(session.reels)} reels, {len(session.categories.custom())} custom categories")
    if args.metrics:
        print(generate_latest().decode("utf-8"), end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reelkeeper", description="Save and categorize shared reels")
    sub = parser.add_subparsers(dest="command", required=True)

    share_cmd = sub.add_parser("share", help="Save shared reel text with AI suggestions")
    share_cmd.add_argument("text", help="Shared text or reel link")
    share_cmd.add_argument("--category", help="Skip the prompt and save with this category")
    share_cmd.add_argument("--notes", help="Notes to attach")
    share_cmd.set_defaults(func=cmd_share)

    classify_cmd = sub.add_parser("classify", help="Classify typed text into one category")
    classify_cmd.add_argument("text", help="Caption text")
    classify_cmd.add_argument("--save", action="store_true", help="Confirm and save afterwards")
    classify_cmd.add_argument("--url", help="Link to store (defaults to the text)")
    classify_cmd.add_argument("--notes", help="Notes to attach")
    classify_cmd.set_defaults(func=cmd_classify)

    save_cmd = sub.add_parser("save", help="Save a reel with a category you choose")
    save_cmd.add_argument("caption", help="Caption text")
    save_cmd.add_argument("category", help="Category name (new names are added)")
    save_cmd.add_argument("--url", help="Link to store (defaults to the caption)")
    save_cmd.add_argument("--notes", help="Notes to attach")
    save_cmd.set_defaults(func=cmd_save)

    list_cmd = sub.add_parser("list", help="List saved reels")
    filters = list_cmd.add_mutually_exclusive_group()
    filters.add_argument("--search", help="Match caption or category text")
    filters.add_argument("--category", help="Exact category (All for every reel)")
    list_cmd.set_defaults(func=cmd_list)

    delete_cmd = sub.add_parser("delete", help="Delete a saved reel")
    delete_cmd.add_argument("reel_id", help="Reel id")
    delete_cmd.set_defaults(func=cmd_delete)

    categories_cmd = sub.add_parser("categories", help="List or manage categories")
    categories_cmd.add_argument("action", nargs="?", choices=["list", "add", "remove"], default="list")
    categories_cmd.add_argument("name", nargs="?", help="Category name for add/remove")
    categories_cmd.set_defaults(func=cmd_categories)

    key_cmd = sub.add_parser("key", help="Manage the Gemini API key")
    key_cmd.add_argument("action", nargs="?", choices=["show", "set", "clear"], default="show")
    key_cmd.add_argument("value", nargs="?", help="API key for set (prompted if omitted)")
    key_cmd.set_defaults(func=cmd_key)

    settings_cmd = sub.add_parser("settings", help="Show or change settings")
    settings_cmd.add_argument("--auto-classify", choices=["on", "off"], help="Classify shared reels automatically")
    settings_cmd.set_defaults(func=cmd_settings)

    stats_cmd = sub.add_parser("stats", help="Reel counts per category")
    stats_cmd.add_argument(
        "--metrics", action="store_true", help="Also print this run's Prometheus metrics"
    )
    stats_cmd.set_defaults(func=cmd_stats)

    return parser


def main(argv: Optional[list[str]] = None, input_fn: InputFn = input) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "categories" and args.action in ("add", "remove") and not args.name:
        parser.error(f"categories {args.action} needs a name")

    try:
        session = _open_session()
    except (ValueError, psycopg2.Error) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return int(args.func(session, args, input_fn))
    except ReelKeeperError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
