"""The ordered provisioning steps of ``apply``.

Each step creates one kind of resource. Later steps read the recorded outputs
of earlier ones (the autoscaling group needs the instance profile, subnets and
security group), so the order of ``build_steps`` is significant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from blizzardup.models import AwsResources, Parameter, Plan, ResourceKind, Tag
from blizzardup.services.cloudformation_service import (
    CAPABILITY_NAMED_IAM,
    CREATE_COMPLETE,
    ON_FAILURE_DELETE,
    CloudFormationService,
)
from blizzardup.services.config import ProvisionConfig
from blizzardup.services.ec2_service import Ec2Service, Sleep
from blizzardup.services.errors import PartialProgressError
from blizzardup.services.naming import StorageNamespace, build_param, ec2_key_path
from blizzardup.services.s3_service import S3Service
from blizzardup.services.templates import Template, load_template


logger = logging.getLogger(__name__)

STACK_TAGS = (Tag(key="KIND", value="blizzardup"),)

RawOutputs = dict[str, str]


@dataclass
class StepContext:
    plan: Plan
    spec_file_path: Path
    s3: S3Service
    ec2: Ec2Service
    cloudformation: CloudFormationService
    config: ProvisionConfig
    sleep: Sleep
    load_template: Callable[[Template], str] = load_template

    @property
    def resources(self) -> AwsResources:
        return self.plan.aws_resources


@dataclass(frozen=True)
class ProvisionStep:
    kind: ResourceKind
    title: str
    action: Callable[[StepContext], Awaitable[RawOutputs]]
    extract: Callable[[RawOutputs], dict[str, Any]]
    # Idempotent follow-up run on every apply once the outputs are persisted.
    finish: Optional[Callable[[StepContext], Awaitable[None]]] = None

    def is_satisfied(self, resources: AwsResources) -> bool:
        return resources.is_recorded(self.kind)


def _require(resources: AwsResources, name: str) -> Any:
    value = getattr(resources, name)
    if value is None:
        raise PartialProgressError(f"aws_resources.{name} is not recorded; an earlier step did not complete")
    return value


async def _create_stack_and_wait(
    ctx: StepContext,
    *,
    name: str,
    template: Template,
    parameters: list[Parameter],
    timeout_seconds: float,
    settle_seconds: float,
    capabilities: Optional[list[str]] = None,
) -> RawOutputs:
    await ctx.cloudformation.create_stack(
        name=name,
        template_body=ctx.load_template(template),
        capabilities=capabilities,
        on_failure=ON_FAILURE_DELETE,
        tags=STACK_TAGS,
        parameters=parameters,
    )
    stack = await ctx.cloudformation.poll_stack(
        name,
        target_status=CREATE_COMPLETE,
        timeout_seconds=timeout_seconds,
        interval_seconds=ctx.config.stack_poll_interval_seconds,
        settle_seconds=settle_seconds,
    )
    return stack.outputs


# -----------------
# bucket
# -----------------


async def _create_bucket(ctx: StepContext) -> RawOutputs:
    bucket = _require(ctx.resources, "s3_bucket")
    arn = await ctx.s3.create_bucket(bucket)
    await ctx.sleep(ctx.config.bucket_settle_seconds)

    blizzard_bin = ctx.plan.install_artifacts.blizzard_bin
    if blizzard_bin:
        # uncompressed; the nodes download it while bootstrapping
        await ctx.s3.put_object(
            path=Path(blizzard_bin),
            bucket=bucket,
            key=StorageNamespace.BLIZZARD_BIN.encode(ctx.plan.id),
        )
    else:
        logger.info("skipping blizzard_bin upload, the nodes will download it from GitHub")

    return {"BucketArn": arn}


def _extract_bucket(outputs: RawOutputs) -> dict[str, Any]:
    return {"s3_bucket_arn": outputs.get("BucketArn")}


# -----------------
# key pair
# -----------------


async def _create_key_pair(ctx: StepContext) -> RawOutputs:
    key_name = _require(ctx.resources, "ec2_key_name")
    path = ec2_key_path(ctx.spec_file_path)
    await ctx.ec2.create_key_pair(name=key_name, path=path)
    return {"KeyPath": str(path)}


async def _upload_key(ctx: StepContext) -> None:
    # the key pair cannot be re-created, so the copy happens only after the path is persisted
    path = Path(_require(ctx.resources, "ec2_key_path"))
    if not path.is_file():
        logger.warning("EC2 private key %s not found locally, skipping its S3 copy", path)
        return
    await ctx.s3.put_object(
        path=path,
        bucket=_require(ctx.resources, "s3_bucket"),
        key=StorageNamespace.EC2_ACCESS_KEY.encode(ctx.plan.id),
        content_type="application/octet-stream",
    )


def _extract_key_pair(outputs: RawOutputs) -> dict[str, Any]:
    return {"ec2_key_path": outputs.get("KeyPath")}


# -----------------
# instance role
# -----------------


async def _create_instance_role(ctx: StepContext) -> RawOutputs:
    return await _create_stack_and_wait(
        ctx,
        name=_require(ctx.resources, "cloudformation_ec2_instance_role"),
        template=Template.EC2_INSTANCE_ROLE,
        parameters=[
            build_param("Id", ctx.plan.id),
            build_param("S3BucketName", _require(ctx.resources, "s3_bucket")),
        ],
        capabilities=[CAPABILITY_NAMED_IAM],
        timeout_seconds=ctx.config.role_timeout_seconds,
        settle_seconds=ctx.config.role_settle_seconds,
    )


def _extract_instance_role(outputs: RawOutputs) -> dict[str, Any]:
    return {"cloudformation_ec2_instance_profile_arn": outputs.get("InstanceProfileArn")}


# -----------------
# network
# -----------------

VPC_CIDR = "10.0.0.0/16"
PUBLIC_SUBNET_CIDRS = ("10.0.64.0/19", "10.0.128.0/19", "10.0.192.0/19")
INGRESS_IPV4_RANGE = "0.0.0.0/0"


async def _create_vpc(ctx: StepContext) -> RawOutputs:
    parameters = [
        build_param("Id", ctx.plan.id),
        build_param("VpcCidr", VPC_CIDR),
        *(build_param(f"PublicSubnetCidr{i}", cidr) for i, cidr in enumerate(PUBLIC_SUBNET_CIDRS, start=1)),
        build_param("IngressIpv4Range", INGRESS_IPV4_RANGE),
    ]
    return await _create_stack_and_wait(
        ctx,
        name=_require(ctx.resources, "cloudformation_vpc"),
        template=Template.VPC,
        parameters=parameters,
        timeout_seconds=ctx.config.vpc_timeout_seconds,
        settle_seconds=ctx.config.vpc_settle_seconds,
    )


def _extract_vpc(outputs: RawOutputs) -> dict[str, Any]:
    subnets_raw = outputs.get("PublicSubnetIds")
    subnets = [s.strip() for s in subnets_raw.split(",") if s.strip()] if subnets_raw else None
    return {
        "cloudformation_vpc_id": outputs.get("VpcId"),
        "cloudformation_vpc_security_group_id": outputs.get("SecurityGroupId"),
        "cloudformation_vpc_public_subnet_ids": subnets or None,
    }


# -----------------
# autoscaling group
# -----------------


def asg_parameters(plan: Plan) -> list[Parameter]:
    resources = plan.aws_resources
    machine = plan.machine

    parameters = [
        build_param("Id", plan.id),
        build_param("NodeKind", "worker"),
        build_param("S3BucketName", _require(resources, "s3_bucket")),
        build_param("Ec2KeyPairName", _require(resources, "ec2_key_name")),
        build_param("InstanceProfileArn", _require(resources, "cloudformation_ec2_instance_profile_arn")),
        build_param("SecurityGroupId", _require(resources, "cloudformation_vpc_security_group_id")),
        build_param("PublicSubnetIds", ",".join(_require(resources, "cloudformation_vpc_public_subnet_ids"))),
        build_param("Arch", machine.arch),
    ]

    if machine.instance_types:
        parameters.append(build_param("InstanceTypes", ",".join(machine.instance_types)))
        parameters.append(build_param("InstanceTypesCount", len(machine.instance_types)))

    download_source = "s3" if plan.install_artifacts.blizzard_bin else "github"
    parameters.append(build_param("BlizzardDownloadSource", download_source))

    parameters.append(build_param("AsgSpotInstance", machine.use_spot_instance))
    parameters.append(build_param("OnDemandPercentageAboveBaseCapacity", 0 if machine.use_spot_instance else 100))

    parameters.append(build_param("AsgDesiredCapacity", machine.nodes))
    # one spare slot for rolling template updates
    parameters.append(build_param("AsgMaxSize", machine.nodes + 1))
    return parameters


async def _create_asg(ctx: StepContext) -> RawOutputs:
    nodes = ctx.plan.machine.nodes
    return await _create_stack_and_wait(
        ctx,
        name=_require(ctx.resources, "cloudformation_asg_workers"),
        template=Template.ASG_UBUNTU,
        parameters=asg_parameters(ctx.plan),
        timeout_seconds=ctx.config.asg_timeout_seconds(nodes),
        settle_seconds=ctx.config.asg_settle_seconds,
    )


def _extract_asg(outputs: RawOutputs) -> dict[str, Any]:
    return {"cloudformation_asg_workers_logical_id": outputs.get("AsgLogicalId")}


def build_steps() -> list[ProvisionStep]:
    return [
        ProvisionStep(ResourceKind.BUCKET, "create S3 bucket", _create_bucket, _extract_bucket),
        ProvisionStep(ResourceKind.KEY_PAIR, "create EC2 key pair", _create_key_pair, _extract_key_pair, _upload_key),
        ProvisionStep(ResourceKind.INSTANCE_ROLE, "create EC2 instance role", _create_instance_role, _extract_instance_role),
        ProvisionStep(ResourceKind.NETWORK, "create VPC", _create_vpc, _extract_vpc),
        ProvisionStep(ResourceKind.AUTOSCALING_GROUP, "create ASG for worker nodes", _create_asg, _extract_asg),
    ]
