"""Deterministic names for everything a plan creates.

Every external name is a pure function of the plan id, so a resumed run
re-derives exactly the names an earlier run used.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from blizzardup.models import Parameter, ResourceKind


_NAME_SUFFIXES: dict[ResourceKind, str] = {
    ResourceKind.BUCKET: "s3-bucket",
    ResourceKind.KEY_PAIR: "ec2-key",
    ResourceKind.INSTANCE_ROLE: "ec2-instance-role",
    ResourceKind.NETWORK: "vpc",
    ResourceKind.AUTOSCALING_GROUP: "asg-workers",
}


def encode_name(kind: ResourceKind, plan_id: str) -> str:
    if not plan_id:
        raise ValueError("plan_id must be provided")
    return f"{plan_id}-{_NAME_SUFFIXES[ResourceKind(kind)]}"


class StorageNamespace(str, Enum):
    """Object keys inside the plan bucket."""

    CONFIG_FILE = "blizzardup.config.yaml"
    EC2_ACCESS_KEY = "ec2-access.key"
    BLIZZARD_BIN = "install/blizzard"

    def encode(self, plan_id: str) -> str:
        return f"{plan_id}/{self.value}"


def build_param(key: str, value: Any) -> Parameter:
    if not key:
        raise ValueError("parameter key must be provided")
    if value is None:
        raise ValueError(f"parameter {key!r} has no value")
    if isinstance(value, bool):
        value = "true" if value else "false"
    return Parameter(key=key, value=str(value))


def ec2_key_path(spec_file_path: Path) -> Path:
    # "plans/abc.yaml" -> "plans/abc-ec2-access.key"
    return spec_file_path.parent / f"{spec_file_path.stem}-ec2-access.key"
