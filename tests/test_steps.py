import pytest

from blizzardup.models import ResourceKind
from blizzardup.services.errors import PartialProgressError
from blizzardup.services.plan_store import assign_default_names, load_plan
from blizzardup.services.setup.steps import asg_parameters, build_steps
from blizzardup.services.templates import Template, load_template

from conftest import write_plan


def _complete_plan(path, **overrides):
    plan = load_plan(write_plan(path, **overrides))
    assign_default_names(plan)
    plan.aws_resources.record(
        cloudformation_ec2_instance_profile_arn="arn:profile",
        cloudformation_vpc_security_group_id="sg-1",
        cloudformation_vpc_public_subnet_ids=["subnet-a", "subnet-b"],
    )
    return plan


def test_steps_run_in_dependency_order():
    assert [s.kind for s in build_steps()] == [
        ResourceKind.BUCKET,
        ResourceKind.KEY_PAIR,
        ResourceKind.INSTANCE_ROLE,
        ResourceKind.NETWORK,
        ResourceKind.AUTOSCALING_GROUP,
    ]


def test_step_predicate_needs_no_network(plan_path):
    plan = load_plan(plan_path)
    steps = {s.kind: s for s in build_steps()}

    assert not steps[ResourceKind.KEY_PAIR].is_satisfied(plan.aws_resources)
    plan.aws_resources.record(ec2_key_path="/tmp/k.key")
    assert steps[ResourceKind.KEY_PAIR].is_satisfied(plan.aws_resources)


def test_vpc_outputs_are_split_into_subnets():
    network = next(s for s in build_steps() if s.kind is ResourceKind.NETWORK)

    fields = network.extract({"VpcId": "vpc-1", "SecurityGroupId": "sg-1", "PublicSubnetIds": "subnet-a, subnet-b"})

    assert fields["cloudformation_vpc_public_subnet_ids"] == ["subnet-a", "subnet-b"]


def test_asg_parameters_for_on_demand_nodes(tmp_path):
    params = {p.key: p.value for p in asg_parameters(_complete_plan(tmp_path / "plan.yaml"))}

    assert params["PublicSubnetIds"] == "subnet-a,subnet-b"
    assert params["InstanceTypes"] == "c6a.large"
    assert params["InstanceTypesCount"] == "1"
    assert params["BlizzardDownloadSource"] == "github"
    assert params["AsgSpotInstance"] == "false"
    assert params["OnDemandPercentageAboveBaseCapacity"] == "100"


def test_asg_parameters_for_spot_nodes_with_uploaded_binary(tmp_path):
    plan = _complete_plan(
        tmp_path / "plan.yaml",
        machine={"use_spot_instance": True, "instance_types": []},
        install_artifacts={"blizzard_bin": "/tmp/blizzard"},
    )
    params = {p.key: p.value for p in asg_parameters(plan)}

    assert params["OnDemandPercentageAboveBaseCapacity"] == "0"
    assert params["BlizzardDownloadSource"] == "s3"
    assert "InstanceTypes" not in params


def test_asg_parameters_require_network_outputs(plan_path):
    plan = load_plan(plan_path)
    assign_default_names(plan)

    with pytest.raises(PartialProgressError, match="cloudformation_ec2_instance_profile_arn"):
        asg_parameters(plan)


@pytest.mark.parametrize("template", list(Template))
def test_bundled_templates_load(template):
    assert "AWSTemplateFormatVersion" in load_template(template)
