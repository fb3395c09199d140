from __future__ import annotations

import asyncio
from pathlib import Path

from blizzardup.models import Plan
from blizzardup.services.cancellation import CancellationToken
from blizzardup.services.cloudformation_service import CloudFormationService
from blizzardup.services.config import AwsConfig, ProvisionConfig
from blizzardup.services.ec2_service import Ec2Service
from blizzardup.services.identity_service import StsService
from blizzardup.services.plan_store import PlanStore
from blizzardup.services.s3_service import S3Service
from blizzardup.services.setup.apply_service import ApplyService
from blizzardup.services.setup.steps import StepContext


def get_aws_config(plan: Plan) -> AwsConfig:
    return AwsConfig.from_env(region_name=plan.aws_resources.region)


def get_s3_service(plan: Plan) -> S3Service:
    return S3Service(get_aws_config(plan))


def get_ec2_service(plan: Plan) -> Ec2Service:
    return Ec2Service(get_aws_config(plan))


def get_cloudformation_service(plan: Plan) -> CloudFormationService:
    return CloudFormationService(get_aws_config(plan))


def get_sts_service(plan: Plan) -> StsService:
    return StsService(get_aws_config(plan))


def get_apply_service(
    *,
    plan: Plan,
    spec_file_path: Path,
    token: CancellationToken,
    skip_prompt: bool,
) -> ApplyService:
    """Wire the apply workflow for a loaded plan.

    Services are built per plan since the AWS region comes from the plan itself.
    """

    s3 = get_s3_service(plan)
    context = StepContext(
        plan=plan,
        spec_file_path=spec_file_path,
        s3=s3,
        ec2=get_ec2_service(plan),
        cloudformation=get_cloudformation_service(plan),
        config=ProvisionConfig.from_env(),
        sleep=asyncio.sleep,
    )
    return ApplyService(
        plan=plan,
        store=PlanStore(path=spec_file_path, s3=s3),
        sts=get_sts_service(plan),
        context=context,
        token=token,
        skip_prompt=skip_prompt,
        handle_signals=True,
    )
