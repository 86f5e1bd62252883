"""
The OperatorConfig holds the identity of the running operator. It is read once
from the process environment at startup and handed to every component that
needs it, so nothing reads the environment while a reconciliation runs.
"""

# Standard
from dataclasses import dataclass
from typing import Mapping, Optional
import os

# First Party
import alog

# Local
from . import config, constants
from .exceptions import assert_config

log = alog.use_channel("OPCFG")

# Directory holding the definition that ships with the package
BUNDLED_DEFINITION_DIR = os.path.join(os.path.dirname(__file__), "data")


@dataclass(frozen=True)
class OperatorConfig:
    """Immutable identity of the running operator"""

    # Namespace the operator's own Deployment is installed into
    install_namespace: str
    # Package identity written by the package manager, e.g. my-operator.v0.1.0
    operator_name_version: str
    # Full path to the provider registration definition file
    definition_path: str

    @classmethod
    def from_environment(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        definition_dir: Optional[str] = None,
    ) -> "OperatorConfig":
        """Build the config from the process environment

        Args:
            environ:  Optional[Mapping[str, str]]
                The environment to read. Defaults to os.environ
            definition_dir:  Optional[str]
                Directory holding the definition file. Defaults to the library
                config value, then to the definition bundled with the package

        Returns:
            operator_config:  OperatorConfig
                The constructed config

        Raises:
            ConfigError: If either required environment value is missing
        """
        environ = os.environ if environ is None else environ

        install_namespace = environ.get(constants.INSTALL_NAMESPACE_ENV_VAR)
        assert_config(
            install_namespace is not None,
            f"{constants.INSTALL_NAMESPACE_ENV_VAR} must be set",
        )
        operator_name_version = environ.get(constants.OPERATOR_NAME_ENV_VAR)
        assert_config(
            operator_name_version is not None,
            f"{constants.OPERATOR_NAME_ENV_VAR} must be set",
        )

        definition_dir = (
            definition_dir or config.definition_dir or BUNDLED_DEFINITION_DIR
        )
        definition_path = os.path.join(definition_dir, constants.DEFINITION_FILE_NAME)

        log.debug(
            "Operator [%s] installed in [%s] with definition [%s]",
            operator_name_version,
            install_namespace,
            definition_path,
        )
        return cls(
            install_namespace=install_namespace,
            operator_name_version=operator_name_version,
            definition_path=definition_path,
        )

    @property
    def owner_label_selector(self) -> str:
        """Label selector matching everything the package manager installed for
        this operator version
        """
        return ",".join(
            [
                f"{constants.OLM_OWNER_LABEL}={self.operator_name_version}",
                f"{constants.OLM_OWNER_KIND_LABEL}={constants.OLM_OWNER_KIND_VALUE}",
            ]
        )
