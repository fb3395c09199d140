from __future__ import annotations

from enum import Enum
from importlib import resources


class Template(str, Enum):
    EC2_INSTANCE_ROLE = "ec2_instance_role.yaml"
    VPC = "vpc.yaml"
    ASG_UBUNTU = "asg_ubuntu.yaml"


def load_template(template: Template) -> str:
    return resources.files("blizzardup.templates").joinpath(template.value).read_text(encoding="utf-8")
