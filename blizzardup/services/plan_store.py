from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from blizzardup.models import Plan, ResourceKind
from blizzardup.services.errors import ConfigError
from blizzardup.services.naming import StorageNamespace, encode_name
from blizzardup.services.s3_service import S3Service


logger = logging.getLogger(__name__)


def load_plan(path: Path) -> Plan:
    """Parse and validate a plan file."""

    if not path.exists() or not path.is_file():
        raise ConfigError(f"Plan file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Plan file is not valid YAML: {path}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Plan file must contain a mapping at the top level: {path}")

    try:
        return Plan.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid plan file {path}:\n{exc}") from exc


def encode_plan(plan: Plan) -> str:
    return yaml.safe_dump(plan.model_dump(mode="json"), sort_keys=False)


def assign_default_names(plan: Plan) -> None:
    """Fill every external name still missing with the name derived from the plan id."""

    resources = plan.aws_resources
    defaults = {
        "s3_bucket": encode_name(ResourceKind.BUCKET, plan.id),
        "ec2_key_name": encode_name(ResourceKind.KEY_PAIR, plan.id),
        "cloudformation_ec2_instance_role": encode_name(ResourceKind.INSTANCE_ROLE, plan.id),
        "cloudformation_vpc": encode_name(ResourceKind.NETWORK, plan.id),
        "cloudformation_asg_workers": encode_name(ResourceKind.AUTOSCALING_GROUP, plan.id),
    }
    for name, value in defaults.items():
        if getattr(resources, name) is None:
            setattr(resources, name, value)


class PlanStore:
    """Keeps the plan file, and its copy in the plan bucket, in sync with memory.

    The plan is the only record of what exists; ``persist`` must run after every
    change so an interrupted run resumes where it stopped.
    """

    def __init__(self, *, path: Path, s3: Optional[S3Service]) -> None:
        self._path = path
        self._s3 = s3

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Plan:
        return load_plan(self._path)

    def sync(self, plan: Plan) -> None:
        """Atomically rewrite the local plan file."""

        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(encode_plan(plan), encoding="utf-8")
        os.replace(tmp_path, self._path)
        logger.debug("saved plan to %s", self._path)

    async def persist(self, plan: Plan) -> None:
        self.sync(plan)

        resources = plan.aws_resources
        # nothing to mirror into until the bucket exists
        if self._s3 is None or resources.s3_bucket_arn is None or resources.s3_bucket is None:
            return
        await self._s3.put_object(
            path=self._path,
            bucket=resources.s3_bucket,
            key=StorageNamespace.CONFIG_FILE.encode(plan.id),
            content_type="application/x-yaml",
        )
