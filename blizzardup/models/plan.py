from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


_PLAN_ID_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
# "{id}-s3-bucket" must fit the 63 character bucket name limit
MAX_PLAN_ID_LENGTH = 53


class ResourceKind(str, Enum):
    BUCKET = "bucket"
    KEY_PAIR = "key-pair"
    INSTANCE_ROLE = "instance-role"
    NETWORK = "network"
    AUTOSCALING_GROUP = "autoscaling-group"


class Identity(BaseModel):
    """AWS caller identity as returned by STS GetCallerIdentity."""

    account_id: str
    role_arn: str
    user_id: str

    @staticmethod
    def from_sts_response(resp: dict[str, Any]) -> "Identity":
        return Identity(
            account_id=str(resp.get("Account")),
            role_arn=str(resp.get("Arn")),
            user_id=str(resp.get("UserId")),
        )


class Machine(BaseModel):
    nodes: int = Field(default=2, ge=1, description="Desired worker node count")
    arch: Literal["amd64", "arm64"] = "amd64"
    instance_types: list[str] = Field(default_factory=list)
    use_spot_instance: bool = False


class InstallArtifacts(BaseModel):
    blizzard_bin: Optional[str] = Field(
        default=None,
        description="Local path of the blizzard binary; downloaded from GitHub on the nodes when unset",
    )


# Record fields that a step fills in. A kind is complete once all of its fields are set.
RECORD_FIELDS: dict[ResourceKind, tuple[str, ...]] = {
    ResourceKind.BUCKET: ("s3_bucket_arn",),
    ResourceKind.KEY_PAIR: ("ec2_key_path",),
    ResourceKind.INSTANCE_ROLE: ("cloudformation_ec2_instance_profile_arn",),
    ResourceKind.NETWORK: (
        "cloudformation_vpc_id",
        "cloudformation_vpc_security_group_id",
        "cloudformation_vpc_public_subnet_ids",
    ),
    ResourceKind.AUTOSCALING_GROUP: ("cloudformation_asg_workers_logical_id",),
}


class AwsResources(BaseModel):
    """Names and outputs of everything the apply workflow creates.

    Output fields only ever move from ``None`` to a value; use ``record`` to
    write them so a resumed run can never lose what an earlier run created.
    """

    region: str
    s3_bucket: Optional[str] = None
    identity: Optional[Identity] = None

    ec2_key_name: Optional[str] = None
    cloudformation_ec2_instance_role: Optional[str] = None
    cloudformation_vpc: Optional[str] = None
    cloudformation_asg_workers: Optional[str] = None

    s3_bucket_arn: Optional[str] = None
    ec2_key_path: Optional[str] = None
    cloudformation_ec2_instance_profile_arn: Optional[str] = None
    cloudformation_vpc_id: Optional[str] = None
    cloudformation_vpc_security_group_id: Optional[str] = None
    cloudformation_vpc_public_subnet_ids: Optional[list[str]] = None
    cloudformation_asg_workers_logical_id: Optional[str] = None

    @field_validator("region")
    @classmethod
    def _region_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("region must not be empty")
        return value.strip()

    def is_recorded(self, kind: ResourceKind) -> bool:
        return all(getattr(self, name) is not None for name in RECORD_FIELDS[kind])

    def missing_fields(self, kind: ResourceKind) -> list[str]:
        return [name for name in RECORD_FIELDS[kind] if getattr(self, name) is None]

    def record(self, **updates: Any) -> list[str]:
        """Fill empty fields from ``updates``; returns the names actually written."""

        written: list[str] = []
        for name, value in updates.items():
            if name not in type(self).model_fields:
                raise KeyError(f"Unknown aws_resources field: {name}")
            if value is None or getattr(self, name) is not None:
                continue
            setattr(self, name, value)
            written.append(name)
        return written


class Plan(BaseModel):
    """The apply ledger: configuration plus everything created so far."""

    id: str
    aws_resources: AwsResources
    machine: Machine = Field(default_factory=Machine)
    install_artifacts: InstallArtifacts = Field(default_factory=InstallArtifacts)
    blizzard_spec: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def _id_is_name_safe(cls, value: str) -> str:
        if not _PLAN_ID_PATTERN.match(value):
            raise ValueError("id must contain only lowercase letters, digits and hyphens")
        if len(value) > MAX_PLAN_ID_LENGTH:
            raise ValueError(f"id must be at most {MAX_PLAN_ID_LENGTH} characters (got {len(value)})")
        return value
