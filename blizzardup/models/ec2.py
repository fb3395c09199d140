from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class Member(BaseModel):
    """One EC2 instance in the worker autoscaling group."""

    instance_id: str = Field(..., description="EC2 instance ID")
    instance_state_name: str
    availability_zone: Optional[str] = None
    public_hostname: Optional[str] = None
    public_ipv4: Optional[str] = None

    @staticmethod
    def from_ec2_instance(obj: dict[str, Any]) -> "Member":
        return Member(
            instance_id=str(obj.get("InstanceId")),
            instance_state_name=str((obj.get("State") or {}).get("Name", "unknown")),
            availability_zone=(obj.get("Placement") or {}).get("AvailabilityZone"),
            public_hostname=obj.get("PublicDnsName") or None,
            public_ipv4=obj.get("PublicIpAddress"),
        )
