#!/usr/bin/env python
"""
Command line entrypoint for the dbaasreg provider registration operator
"""

# Standard
from functools import reduce
from typing import Dict, List, Optional, Tuple
import argparse
import sys

# First Party
import aconfig
import alog

# Local
from .cmd import CmdBase, RunOperatorCmd
from .config import library_config
from .log_format import DbaasRegJsonFormatter

log = alog.use_channel("MAIN")

# Maps an argparse dest to the key path of a library config value
CONFIG_SETTERS = Dict[str, List[str]]

## Library config flags ########################################################


def _flag_kwargs(flag: str, dest: str, default) -> dict:
    kwargs = {
        "dest": dest,
        "default": default,
        "help": f"Override the {flag} library config value",
    }
    if isinstance(default, bool):
        kwargs["action"] = "store_true"
    elif isinstance(default, list):
        kwargs["nargs"] = "*"
    elif default is not None:
        kwargs["type"] = type(default)
    return kwargs


def add_library_config_args(
    parser,
    config_obj: Optional[aconfig.Config] = None,
    path: Optional[List[str]] = None,
) -> CONFIG_SETTERS:
    """Add a --dotted.key flag for every leaf of the library config. Nested
    sections are walked recursively. Flags the parser already has are left
    alone.

    Returns:
        setters:  CONFIG_SETTERS
            The key path for each dest that was added
    """
    path = path or []
    config_obj = library_config if config_obj is None else config_obj
    known_flags = parser._option_string_actions  # pylint: disable=protected-access

    setters = {}
    for key, default in config_obj.items():
        key_path = path + [key]
        if isinstance(default, aconfig.AttributeAccessDict):
            setters.update(add_library_config_args(parser, default, key_path))
            continue

        flag = ".".join(key_path)
        dest = "_".join(key_path)
        if f"--{flag}" in known_flags:
            log.debug3("Flag --%s already registered", flag)
            continue
        parser.add_argument(f"--{flag}", **_flag_kwargs(flag, dest, default))
        setters[dest] = key_path
    return setters


def update_library_config(args: argparse.Namespace, setters: CONFIG_SETTERS):
    """Write the parsed flag values back into the library config"""
    for dest, key_path in setters.items():
        *parents, leaf = key_path
        section = reduce(lambda node, key: node[key], parents, library_config)
        section[leaf] = getattr(args, dest)


def add_command(
    subparsers: argparse._SubParsersAction,
    cmd: CmdBase,
) -> Tuple[argparse.ArgumentParser, CONFIG_SETTERS]:
    """Register a command's subparser along with the library config flags"""
    parser = cmd.add_subparser(subparsers)
    parser.set_defaults(func=cmd.cmd)
    setters = add_library_config_args(
        parser.add_argument_group("Library Configuration")
    )
    return parser, setters


## Main ########################################################################


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    subparsers = parser.add_subparsers(help="Available commands", dest="command")
    run_parser, setters = add_command(subparsers, RunOperatorCmd())

    # "run" is the default command
    argv = sys.argv[1:] if argv is None else argv
    if argv and argv[0] in subparsers.choices:
        args = parser.parse_args(argv)
    else:
        args = run_parser.parse_args(argv)

    update_library_config(args, setters)
    alog.configure(
        default_level=library_config.log_level,
        filters=library_config.log_filters,
        formatter=DbaasRegJsonFormatter() if library_config.log_json else "pretty",
        thread_id=library_config.log_thread_id,
    )
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
