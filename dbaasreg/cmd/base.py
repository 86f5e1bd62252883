"""
Interface shared by the dbaasreg subcommands
"""

# Standard
import abc
import argparse


class CmdBase(abc.ABC):
    """A subcommand registers its own parser and runs with the parsed args"""

    @abc.abstractmethod
    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        """Register the subcommand and its arguments, returning its parser"""

    @abc.abstractmethod
    def cmd(self, args: argparse.Namespace) -> int:
        """Run the subcommand and return the process exit code"""
