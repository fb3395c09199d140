from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AwsConfig:
    """Client settings shared by every AWS service wrapper.

    The region always comes from the plan; ``AWS_ENDPOINT_URL`` lets tests and
    local emulators redirect all calls.
    """

    region_name: str
    endpoint_url: Optional[str] = None

    @staticmethod
    def from_env(*, region_name: str) -> "AwsConfig":
        if not region_name:
            raise ValueError("region_name must be provided")

        endpoint_url = os.getenv("AWS_ENDPOINT_URL") or None
        return AwsConfig(region_name=region_name, endpoint_url=endpoint_url)
