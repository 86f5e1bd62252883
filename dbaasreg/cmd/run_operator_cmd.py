"""
Run the provider registration loop until interrupted
"""
# Standard
from typing import List, Optional
import argparse
import glob
import os
import signal

# Third Party
import yaml

# First Party
import alog

# Local
from .. import config, constants
from ..deploy_manager import DeployManagerBase, DryRunDeployManager
from ..exceptions import ConfigError
from ..operator_config import OperatorConfig
from ..watch_manager import WatchManager
from .base import CmdBase

log = alog.use_channel("MAIN")

# Manifest files picked up from --resource_dir
RESOURCE_FILE_PATTERNS = ["*.yaml", "*.yml"]


class RunOperatorCmd(CmdBase):
    __doc__ = __doc__

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("run", help=__doc__)
        dry_run_args = parser.add_argument_group("Dry Run Options")
        dry_run_args.add_argument(
            "--resource_dir",
            "-r",
            default=None,
            help="Directory of yaml manifests to preload into the dry run cluster",
        )
        dry_run_args.add_argument(
            "--withhold_provider_type",
            action="store_true",
            default=False,
            help="Leave the provider API type unserved in the dry run cluster",
        )
        return parser

    def cmd(self, args: argparse.Namespace) -> int:
        if args.resource_dir is not None:
            assert config.dry_run, "--resource_dir requires --dry_run"
            assert os.path.isdir(
                args.resource_dir
            ), f"--resource_dir {args.resource_dir} is not a directory"

        try:
            operator_config = OperatorConfig.from_environment()
        except ConfigError as err:
            log.error("Invalid operator configuration: %s", err)
            return 1

        deploy_manager = self._make_deploy_manager(
            self._load_resources(args.resource_dir), args.withhold_provider_type
        )
        manager = WatchManager(operator_config, deploy_manager=deploy_manager)

        def handle_signal(*_):  # pragma: no cover
            log.info("Received stop signal")
            manager.stop()

        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, handle_signal)

        log.info("Starting provider registration for %s", operator_config)
        if manager.watch():
            manager.wait()
        manager.stop()

        log.info("Shut down%s", " after a watch failure" if manager.failed else "")
        return 1 if manager.failed else 0

    ## Implementation Details ##################################################

    @staticmethod
    def _load_resources(resource_dir: Optional[str]) -> List[dict]:
        """Read every non-empty document of the yaml files in resource_dir, in
        file name order
        """
        if resource_dir is None:
            return []

        paths = sorted(
            path
            for pattern in RESOURCE_FILE_PATTERNS
            for path in glob.glob(os.path.join(resource_dir, pattern))
        )
        resources = []
        for path in paths:
            log.debug3("Reading resource file [%s]", path)
            with open(path, encoding="utf-8") as handle:
                resources.extend(doc for doc in yaml.safe_load_all(handle) if doc)
        return resources

    @staticmethod
    def _make_deploy_manager(
        resources: List[dict],
        withhold_provider_type: bool = False,
    ) -> Optional[DeployManagerBase]:
        """Build the in-memory cluster for a dry run. None means the
        WatchManager connects to the real cluster.
        """
        if not config.dry_run:
            log.info("Running against the cluster")
            return None

        log.info("Running DRY RUN with %d preloaded resources", len(resources))
        deploy_manager = DryRunDeployManager(resources=resources)
        if not withhold_provider_type:
            deploy_manager.register_api_kind(
                constants.PROVIDER_API_VERSION, constants.PROVIDER_KIND
            )
        return deploy_manager
