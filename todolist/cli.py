"""
Command-line front end: the interactive to-do REPL and the ``todolist``
entry point that starts either the REPL or one of the web servers.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional, TextIO

from .config import Settings, get_settings
from .logging_setup import setup_logging
from .operations import Runtime
from .router import handle_call
from .state import PersistenceError, TaskStore
from .timeutil import format_timestamp

logger = logging.getLogger(__name__)

HELP_TEXT = """
=== To-Do List commands ===
view              - show all tasks
add <text>        - add a new task
delete <id>       - delete a task
edit <id> <text>  - change a task's text
toggle <id>       - flip a task between done and not done
help              - show this help
exit              - quit
"""

# command word -> canonical command
ALIASES = {
    "view": "view", "v": "view",
    "add": "add", "a": "add",
    "delete": "delete", "del": "delete", "d": "delete",
    "edit": "edit", "e": "edit",
    "toggle": "toggle", "t": "toggle",
    "help": "help", "h": "help",
    "exit": "exit", "quit": "exit", "q": "exit",
}


class TodoShell:
    """Line-based REPL over a task store; every command goes through handle_call."""

    def __init__(self, rt: Runtime):
        self.rt = rt

    def _call(self, op: str, args: dict) -> tuple[Optional[dict], list[str]]:
        """(result, extra lines); result is None when the call failed."""
        body = handle_call(self.rt, op, args)["body"]
        if not body["ok"]:
            return None, [f"Error: {body['error']['message']}"]
        extra = []
        if "warning" in body:
            extra.append(f"Warning: {body['warning']['message']}")
        return body["result"], extra

    def _view(self) -> list[str]:
        result, lines = self._call("tasks.list", {})
        if result is None:
            return lines
        if not result["items"]:
            return ["No tasks yet!"]
        out = ["", "=== To-Do List ==="]
        for item in result["items"]:
            task = item["task"]
            mark = "[x]" if task.completed else "[ ]"
            line = f"{mark} #{task.id}: {task.description} (created: {format_timestamp(task.created_at)})"
            if task.due_at is not None:
                line += f" due {format_timestamp(task.due_at)}, {item['remaining']}"
            out.append(line)
        out.append("")
        return out

    def handle_line(self, line: str) -> tuple[list[str], bool]:
        """Run one input line; returns (output lines, keep running)."""
        line = line.strip()
        if not line:
            return [], True

        word, _, rest = line.partition(" ")
        command = ALIASES.get(word.lower())
        rest = rest.strip()

        if command is None:
            return [f"Unknown command: {word.lower()}", "Type 'help' to see available commands"], True
        if command == "exit":
            return ["Goodbye!"], False
        if command == "help":
            return HELP_TEXT.splitlines(), True
        if command == "view":
            return self._view(), True

        if command == "add":
            if not rest:
                return ["Error: please give the task text. Usage: add <text>"], True
            task, lines = self._call("tasks.add", {"description": rest})
            if task is not None:
                lines.insert(0, f"Added task #{task.id}: {task.description}")
            return lines, True

        if command == "edit":
            task_id, _, text = rest.partition(" ")
            if not task_id or not text.strip():
                return ["Error: usage: edit <id> <text>"], True
            task, lines = self._call("tasks.edit", {"id": task_id, "description": text.strip()})
            if task is not None:
                lines.insert(0, f"Updated task #{task.id}: {task.description}")
            return lines, True

        # delete / toggle take a single id
        task_id = rest.split(" ", 1)[0]
        if not task_id:
            return [f"Error: please give the task id. Usage: {command} <id>"], True
        if command == "delete":
            result, lines = self._call("tasks.delete", {"id": task_id})
            if result is not None:
                lines.insert(0, f"Deleted task #{result['deleted']}")
            return lines, True

        task, lines = self._call("tasks.toggle", {"id": task_id})
        if task is not None:
            state = "completed" if task.completed else "not completed"
            lines.insert(0, f"Task #{task.id} marked as {state}")
        return lines, True

    def run(self, read_line: Callable[[str], str] = input, out: TextIO = sys.stdout) -> None:
        print("=== Welcome to the To-Do List ===", file=out)
        print("Type 'help' to see available commands", file=out)
        while True:
            try:
                line = read_line("\n> ")
            except EOFError:
                print("Goodbye!", file=out)
                return
            lines, keep_running = self.handle_line(line)
            for text in lines:
                print(text, file=out)
            if not keep_running:
                return


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="todolist", description="Personal to-do list manager.")
    parser.add_argument("--file", type=Path, help="JSON data file (overrides TODOLIST_DATA_FILE)")
    parser.add_argument("--log-level", help="console log level (overrides TODOLIST_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("repl", help="interactive command-line to-do list")

    serve = sub.add_parser("serve", help="run the web server")
    serve.add_argument("--variant", choices=["single", "multi"], help="server flavour")
    serve.add_argument("--host", help="bind address")
    serve.add_argument("--port", type=int, help="bind port")
    serve.add_argument("--sort", choices=["created", "due", "smart"], help="task list order")
    return parser


def _run_repl(settings: Settings) -> int:
    store = TaskStore(settings.data_file)
    try:
        store.load()
    except PersistenceError as err:
        logger.error("Cannot start: %s", err)
        return 1
    TodoShell(Runtime(store=store, sort_order=settings.sort_order)).run()
    return 0


def _run_server(settings: Settings) -> int:
    import uvicorn

    from .main import create_app

    try:
        app = create_app(settings)
    except PersistenceError as err:
        logger.error("Cannot start: %s", err)
        return 1
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ValueError as err:
        print(f"todolist: {err}", file=sys.stderr)
        return 2

    command = args.command or ("repl" if settings.variant == "cli" else "serve")
    if command == "repl":
        settings = settings.with_overrides(variant="cli")
    else:
        variant = getattr(args, "variant", None)
        if variant is None and settings.variant == "cli":
            variant = "multi"
        settings = settings.with_overrides(
            variant=variant,
            host=getattr(args, "host", None),
            port=getattr(args, "port", None),
            sort_order_override=getattr(args, "sort", None),
        )
    settings = settings.with_overrides(data_file_override=args.file, log_level=args.log_level)

    # The REPL owns the terminal: only warnings reach the console there.
    level_name = settings.log_level.upper()
    console_level = getattr(logging, level_name, logging.INFO)
    if command == "repl":
        console_level = max(console_level, logging.WARNING)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)
    logger.info("Starting todolist (%s)", settings.variant)

    if command == "repl":
        return _run_repl(settings)
    return _run_server(settings)


if __name__ == "__main__":
    sys.exit(main())
