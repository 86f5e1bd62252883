"""
Tests for loading the registration definition
"""
# Standard
import os

# Third Party
import pytest

# Local
from dbaasreg.definition import load_definition
from dbaasreg.exceptions import DefinitionError
from dbaasreg.operator_config import BUNDLED_DEFINITION_DIR
from dbaasreg.test_helpers.helpers import TEST_SPEC, write_definition


def test_load_definition_happy_path(tmp_path):
    """Make sure the spec and name are read from the file"""
    path = write_definition(tmp_path)
    definition = load_definition(path)
    assert definition.name == "rds-registration"
    assert definition.spec == TEST_SPEC
    assert definition.raw["kind"] == "DBaaSProvider"


def test_load_definition_json(tmp_path):
    """Make sure a JSON document is accepted"""
    path = write_definition(
        tmp_path, content='{"metadata": {"name": "x"}, "spec": {"a": [1, 2]}}'
    )
    definition = load_definition(path)
    assert definition.name == "x"
    assert definition.spec == {"a": [1, 2]}


def test_load_definition_unclean_path(tmp_path):
    """Make sure redundant path segments are normalized before reading"""
    write_definition(tmp_path)
    path = os.path.join(str(tmp_path), "sub", "..", "rds_registration.yaml")
    assert load_definition(path).spec == TEST_SPEC


def test_load_definition_missing_spec(tmp_path):
    """Make sure a document without a spec gives an empty spec"""
    path = write_definition(tmp_path, content="metadata:\n  name: foo\n")
    assert load_definition(path).spec == {}


def test_load_definition_missing_file(tmp_path):
    """Make sure a missing file is a DefinitionError with the path"""
    path = os.path.join(str(tmp_path), "rds_registration.yaml")
    with pytest.raises(DefinitionError) as err:
        load_definition(path)
    assert err.value.path == path


def test_load_definition_bad_yaml(tmp_path):
    """Make sure a file that doesn't parse is a DefinitionError"""
    path = write_definition(tmp_path, content="spec: [unclosed\n")
    with pytest.raises(DefinitionError):
        load_definition(path)


@pytest.mark.parametrize(
    "content", ["", "- a\n- b\n", "just a string\n", "spec: [1, 2]\n"]
)
def test_load_definition_not_a_mapping(tmp_path, content):
    """Make sure documents of the wrong shape are a DefinitionError"""
    path = write_definition(tmp_path, content=content)
    with pytest.raises(DefinitionError):
        load_definition(path)


def test_load_definition_reads_fresh(tmp_path):
    """Make sure edits to the file are picked up on the next load"""
    path = write_definition(tmp_path, spec={"version": 1})
    assert load_definition(path).spec == {"version": 1}
    write_definition(tmp_path, spec={"version": 2})
    assert load_definition(path).spec == {"version": 2}


def test_load_bundled_definition():
    """Make sure the definition shipped with the package loads"""
    definition = load_definition(
        os.path.join(BUNDLED_DEFINITION_DIR, "rds_registration.yaml")
    )
    assert definition.name == "rds-registration"
    assert definition.spec["inventoryKind"] == "RDSInventory"
