"""
Loader for the static provider registration definition that ships with the
operator
"""

# Standard
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import os

# Third Party
import yaml

# First Party
import alog

# Local
from .exceptions import DefinitionError

log = alog.use_channel("DEFN")


@dataclass(frozen=True)
class ResourceDefinition:
    """The parsed content of a definition file"""

    # metadata.name declared in the file, if any
    name: Optional[str]
    # The spec payload that is copied onto the provider registration
    spec: Dict[str, Any] = field(default_factory=dict)
    # The whole parsed document
    raw: Dict[str, Any] = field(default_factory=dict)


def load_definition(path: str) -> ResourceDefinition:
    """Read and parse the definition file at the given path. The file is read
    fresh on every call. YAML and JSON documents are both accepted since JSON
    is valid YAML.

    Args:
        path:  str
            The path to the definition file

    Returns:
        definition:  ResourceDefinition
            The parsed definition

    Raises:
        DefinitionError: If the file can't be read, doesn't parse, or doesn't
            hold a single mapping document
    """
    clean_path = os.path.normpath(path)
    log.debug2("Loading definition from [%s]", clean_path)

    try:
        with open(clean_path, encoding="utf-8") as handle:
            content = yaml.safe_load(handle)
    except OSError as err:
        raise DefinitionError(
            f"Unable to read definition file {clean_path}: {err}", path=clean_path
        ) from err
    except yaml.YAMLError as err:
        raise DefinitionError(
            f"Unable to parse definition file {clean_path}: {err}", path=clean_path
        ) from err

    if not isinstance(content, dict):
        raise DefinitionError(
            f"Definition file {clean_path} does not hold a mapping document",
            path=clean_path,
        )

    metadata = content.get("metadata") or {}
    spec = content.get("spec") or {}
    if not isinstance(metadata, dict) or not isinstance(spec, dict):
        raise DefinitionError(
            f"Definition file {clean_path} has a non-mapping metadata or spec",
            path=clean_path,
        )

    definition = ResourceDefinition(name=metadata.get("name"), spec=spec, raw=content)
    log.debug3("Loaded definition [%s]: %s", definition.name, definition.spec)
    return definition
