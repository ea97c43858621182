"""
Strategy Studio — offline CLI (3 subcommands via argparse)

Commands: validate, tree, normalize
Each reads a strategy payload (JSON file, or - for stdin) in the backend
load format. All output as JSON envelope.

Exit codes: 0 ok, 1 validation errors, 2 unreadable or malformed input.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import strategy_codec
from strategy_codec import StrategyFormatError
from strategy_model import EditableState
from ui.services.list_model import build_list_model, format_outline

_log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_BAD_INPUT = 2


# ---------------------------------------------------------------------------
# JSON envelope helper
# ---------------------------------------------------------------------------

def _envelope(command: str, source: str, ok: bool, result: Any) -> str:
    """Format standard JSON output envelope."""
    d = {
        "command": command,
        "source": source,
        "timestamp": datetime.now(timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%S.%f"
        )[:-3] + "Z",
        "ok": ok,
        "result": result,
    }
    return json.dumps(d, indent=2, sort_keys=False)


def _read_payload(path: str) -> Dict[str, Any]:
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise StrategyFormatError("Strategy payload must be a JSON object")
    return data


def _load_state(args: argparse.Namespace) -> Tuple[Optional[EditableState], Optional[str]]:
    try:
        return strategy_codec.load(_read_payload(args.file)), None
    except OSError as e:
        return None, f"Cannot read {args.file}: {e.strerror or e}"
    except (ValueError, StrategyFormatError) as e:
        # json.JSONDecodeError is a ValueError
        return None, f"Malformed strategy payload: {e}"


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------

def cmd_validate(args: argparse.Namespace) -> Tuple[str, int]:
    """validate FILE"""
    state, error = _load_state(args)
    if state is None:
        return _envelope("validate", args.file, False, {"error": error}), EXIT_BAD_INPUT

    errors = strategy_codec.validate(state)
    result = {
        "name": state.name,
        "conditions": len(state.conditions),
        "errors": [
            {"code": e.code, "message": e.message, "ref": e.ref} for e in errors
        ],
    }
    _log.info("Validated %s: %d error(s)", args.file, len(errors))
    ok = not errors
    return _envelope("validate", args.file, ok, result), EXIT_OK if ok else EXIT_INVALID


def cmd_tree(args: argparse.Namespace) -> Tuple[str, int]:
    """tree FILE"""
    state, error = _load_state(args)
    if state is None:
        return _envelope("tree", args.file, False, {"error": error}), EXIT_BAD_INPUT

    model = build_list_model(state.conditions, state.logic_tree)
    outline = format_outline(model, indent=" " * args.indent)
    return _envelope("tree", args.file, True, {"outline": outline}), EXIT_OK


def cmd_normalize(args: argparse.Namespace) -> Tuple[str, int]:
    """normalize FILE"""
    state, error = _load_state(args)
    if state is None:
        return _envelope("normalize", args.file, False, {"error": error}), EXIT_BAD_INPUT
    return _envelope("normalize", args.file, True, strategy_codec.save(state)), EXIT_OK


# ---------------------------------------------------------------------------
# CLI parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build argparse parser with 3 subcommands."""
    parser = argparse.ArgumentParser(
        prog="strategy_cli",
        description="Strategy Studio offline tools",
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log at INFO level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_validate = subparsers.add_parser("validate", help="Check name and condition references")
    p_validate.add_argument("file", help="Strategy JSON file, or - for stdin")

    p_tree = subparsers.add_parser("tree", help="Print the logic tree outline")
    p_tree.add_argument("file", help="Strategy JSON file, or - for stdin")
    p_tree.add_argument("--indent", type=int, default=2)

    p_normalize = subparsers.add_parser("normalize", help="Print the save-format payload")
    p_normalize.add_argument("file", help="Strategy JSON file, or - for stdin")

    return parser


# ---------------------------------------------------------------------------
# Main dispatch
# ---------------------------------------------------------------------------

COMMAND_HANDLERS = {
    "validate": cmd_validate,
    "tree": cmd_tree,
    "normalize": cmd_normalize,
}


def main(argv: Optional[list] = None) -> Tuple[str, int]:
    """Parse args and dispatch to handler.  Returns (JSON output, exit code)."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)
    handler = COMMAND_HANDLERS[args.command]
    return handler(args)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    output, code = main()
    print(output)
    sys.exit(code)
