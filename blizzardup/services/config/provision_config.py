from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import ClassVar

from blizzardup.services.errors import ConfigError


@dataclass(frozen=True)
class ProvisionConfig:
    """Waits, timeouts and retry budgets of the apply workflow (seconds).

    Every field can be overridden with ``BLIZZARDUP_<FIELD_NAME_UPPERCASE>``,
    e.g. ``BLIZZARDUP_ASG_MAX_TIMEOUT_SECONDS=3600``.
    """

    ENV_PREFIX: ClassVar[str] = "BLIZZARDUP_"

    stack_poll_interval_seconds: float = 30.0
    bucket_settle_seconds: float = 1.0

    role_settle_seconds: float = 10.0
    role_timeout_seconds: float = 500.0

    vpc_settle_seconds: float = 10.0
    vpc_timeout_seconds: float = 300.0

    # ELB creation and volume provisioning dominate the ASG wait
    asg_settle_seconds: float = 60.0
    asg_base_timeout_seconds: float = 700.0
    asg_per_node_timeout_seconds: float = 60.0
    asg_max_timeout_seconds: float = 50 * 60.0

    list_max_attempts: int = 20
    list_delay_seconds: float = 30.0
    bootstrap_wait_seconds: float = 20.0

    def asg_timeout_seconds(self, nodes: int) -> float:
        wait = self.asg_base_timeout_seconds + self.asg_per_node_timeout_seconds * nodes
        return min(wait, self.asg_max_timeout_seconds)

    @staticmethod
    def from_env() -> "ProvisionConfig":
        overrides: dict[str, float | int] = {}
        for field in fields(ProvisionConfig):
            env_name = ProvisionConfig.ENV_PREFIX + field.name.upper()
            raw = os.getenv(env_name)
            if not raw:
                continue

            cast = int if field.type in (int, "int") else float
            try:
                value = cast(raw)
            except ValueError as exc:
                raise ConfigError(f"Invalid {env_name}; must be a number") from exc
            if value < 0:
                raise ConfigError(f"Invalid {env_name}; must not be negative")
            overrides[field.name] = value

        return ProvisionConfig(**overrides)
