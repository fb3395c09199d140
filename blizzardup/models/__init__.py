from blizzardup.models.cloudformation import Parameter, StackDescriptor, Tag
from blizzardup.models.ec2 import Member
from blizzardup.models.plan import (
    AwsResources,
    Identity,
    InstallArtifacts,
    Machine,
    Plan,
    RECORD_FIELDS,
    ResourceKind,
)

__all__ = [
    "AwsResources",
    "Identity",
    "InstallArtifacts",
    "Machine",
    "Member",
    "Parameter",
    "Plan",
    "RECORD_FIELDS",
    "ResourceKind",
    "StackDescriptor",
    "Tag",
]
