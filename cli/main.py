"""CLI entry point and argument parsing"""

import argparse
import sys

from rich.console import Console

from cli.cli_app import CalendarBarCLI

console = Console()

COMMANDS = ("login", "logout", "refresh", "status", "events", "watch")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calendarbar",
        description="Show today's Google Calendar events, with a local OAuth login",
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "command",
        nargs="?",
        choices=COMMANDS,
        help="Run one command and exit (default: interactive menu)",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Do not ask for confirmation on logout",
    )
    return parser


def main(argv=None) -> int:
    """Entry point for the CLI"""
    args = build_parser().parse_args(argv)

    try:
        cli = CalendarBarCLI(debug=args.debug)
    except Exception as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        return 1

    try:
        if args.command is None:
            cli.run()
            return 0
        if args.command == "logout":
            ok = cli.logout(confirm=not args.yes)
        elif args.command == "watch":
            cli.watch()
            ok = True
        else:
            ok = getattr(cli, args.command)()
        return 0 if ok else 1

    except KeyboardInterrupt:
        cli.console.print("\n[yellow]Interrupted by user[/yellow]")
        cli.console.print("Goodbye!")
        return 130
    except Exception as e:
        cli.console.print(f"\n[red]Fatal error:[/red] {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        cli.close()


if __name__ == "__main__":
    sys.exit(main())
