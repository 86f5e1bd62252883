"""
Shared module to hold constant values for the library
"""

## Target resource #############################################################

# The provider registration resource that this operator owns
PROVIDER_GROUP = "dbaas.redhat.com"
PROVIDER_VERSION = "v1beta1"
PROVIDER_API_VERSION = f"{PROVIDER_GROUP}/{PROVIDER_VERSION}"
PROVIDER_KIND = "DBaaSProvider"
PROVIDER_NAME = "rds-registration"

# Labels applied to the provider registration on every write
RELATED_TO_LABEL_NAME = "related-to"
RELATED_TO_LABEL_VALUE = "dbaas-operator"
TYPE_LABEL_NAME = "type"
TYPE_LABEL_VALUE = "dbaas-provider-registration"
PROVIDER_LABELS = {
    RELATED_TO_LABEL_NAME: RELATED_TO_LABEL_VALUE,
    TYPE_LABEL_NAME: TYPE_LABEL_VALUE,
}

# Name of the bundled definition file inside the definition directory
DEFINITION_FILE_NAME = "rds_registration.yaml"

## Watched workload ############################################################

WORKLOAD_API_VERSION = "apps/v1"
WORKLOAD_KIND = "Deployment"

## Ownership ###################################################################

# Labels written by the package manager onto everything it installs
OLM_OWNER_LABEL = "olm.owner"
OLM_OWNER_KIND_LABEL = "olm.owner.kind"
OLM_OWNER_KIND_VALUE = "ClusterServiceVersion"

# Owner candidates for garbage collection of the provider registration
OWNER_GROUP = "rbac.authorization.k8s.io"
OWNER_API_VERSION = f"{OWNER_GROUP}/v1"
OWNER_KIND = "ClusterRole"

# Name recorded on the not-found error when no owner candidate exists
MISSING_OWNER_NAME = "potentialOwner"

## Process environment #########################################################

INSTALL_NAMESPACE_ENV_VAR = "INSTALL_NAMESPACE"
OPERATOR_NAME_ENV_VAR = "OPERATOR_CONDITION_NAME"

## Misc ########################################################################

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
