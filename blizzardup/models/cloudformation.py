from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Parameter(BaseModel):
    key: str = Field(..., min_length=1)
    value: str

    def to_api(self) -> dict[str, str]:
        return {"ParameterKey": self.key, "ParameterValue": self.value}


class Tag(BaseModel):
    key: str = Field(..., min_length=1)
    value: str

    def to_api(self) -> dict[str, str]:
        return {"Key": self.key, "Value": self.value}


class StackDescriptor(BaseModel):
    name: str
    status: str
    outputs: dict[str, str] = Field(default_factory=dict)

    @staticmethod
    def from_describe_stacks(stack: dict[str, Any]) -> "StackDescriptor":
        outputs = {
            str(o.get("OutputKey")): str(o.get("OutputValue"))
            for o in stack.get("Outputs") or []
            if o.get("OutputKey") is not None
        }
        return StackDescriptor(
            name=str(stack.get("StackName")),
            status=str(stack.get("StackStatus")),
            outputs=outputs,
        )
