"""The ``transporter`` command: inspect adaptors and write a starter pipeline."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any, Callable, Optional, Sequence

from . import registry
from .postgres import adaptor as _postgres_adaptor  # noqa: F401  (registers "postgres")
from .rabbitmq import adaptor as _rabbitmq_adaptor  # noqa: F401  (registers "rabbitmq")
from .rethinkdb import adaptor as _rethinkdb_adaptor  # noqa: F401  (registers "rethinkdb")

DEFAULT_PIPELINE_FILE = "pipeline.js"

VERSION = "dev"


def _usage(prog: str = "transporter") -> str:
    return (
        "USAGE\n"
        f"  {prog} <command> [flags]\n"
        "\n"
        "COMMANDS\n"
        "  about     show information about available adaptors\n"
        "  init      initialize a config and pipeline file based from provided adaptors\n"
        "\n"
        "VERSION\n"
        f"  {VERSION}\n"
        "\n"
    )


def _parser(name: str, short: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=f"transporter {name}", usage=short)
    parser.add_argument("args", nargs="*")
    return parser


def _describable(adaptor: Any) -> bool:
    return callable(getattr(adaptor, "description", None)) and callable(
        getattr(adaptor, "sample_config", None)
    )


def _lookup(name: str) -> Any:
    try:
        return registry.get_adaptor(name, {})
    except registry.AdaptorNotFoundError:
        return None


def run_about(args: Sequence[str]) -> None:
    """Print the description of every adaptor, or of one with its sample configuration."""
    positional = _parser("about", "transporter about [adaptor]").parse_args(list(args)).args
    if positional:
        found = {positional[0]: _lookup(positional[0])}
    else:
        found = registry.adaptors()

    for name in sorted(found):
        adaptor = found[name]
        if _describable(adaptor):
            print(f"{name} - {adaptor.description()}")
            if positional:
                print(f"\n Sample configuration:\n{adaptor.sample_config()}")
        else:
            print(f"{name} - no description available")


def _confirm_overwrite() -> bool:
    print(f"{DEFAULT_PIPELINE_FILE} exists, overwrite? (y/n) ", end="", flush=True)
    words = sys.stdin.readline().split()
    return bool(words) and words[0].lower() == "y"


def run_init(args: Sequence[str]) -> None:
    """Write ``pipeline.js`` connecting a source adaptor to a sink adaptor."""
    parser = _parser("init", "transporter init [source] [sink]")
    positional = parser.parse_args(list(args)).args
    if len(positional) != 2:
        raise ValueError(
            f"wrong number of arguments provided, expected 2, got {len(positional)}"
        )
    if os.path.exists(DEFAULT_PIPELINE_FILE) and not _confirm_overwrite():
        print(f"not overwriting {DEFAULT_PIPELINE_FILE}, exiting...")
        return

    print(f"Writing {DEFAULT_PIPELINE_FILE}...")
    with open(DEFAULT_PIPELINE_FILE, "w", encoding="utf-8") as handle:
        node_name = "source"
        for name in positional:
            adaptor = _lookup(name)
            if not _describable(adaptor):
                raise ValueError(f"adaptor '{name}' did not provide a sample config")
            handle.write(f"var {node_name} = {name}({adaptor.sample_config()})\n\n")
            node_name = "sink"
        handle.write('t.Source("source", source, "/.*/").Save("sink", sink, "/.*/")')
        handle.write("\n")


_COMMANDS: dict[str, Callable[[Sequence[str]], None]] = {
    "about": run_about,
    "init": run_init,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Dispatch to a subcommand and return the process exit status."""
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    if not argv:
        sys.stderr.write(_usage())
        return 1
    command = _COMMANDS.get(argv[0].lower())
    if command is None:
        sys.stderr.write(_usage())
        return 1
    try:
        command(argv[1:])
    except Exception as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())