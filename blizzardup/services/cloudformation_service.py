from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Sequence

import aioboto3
from botocore.exceptions import ClientError

from blizzardup.models import Parameter, StackDescriptor, Tag
from blizzardup.services.config import AwsConfig
from blizzardup.services.errors import PollTimeoutError, ProvisionError, StackFailedError


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]

CREATE_COMPLETE = "CREATE_COMPLETE"
ON_FAILURE_DELETE = "DELETE"
CAPABILITY_NAMED_IAM = "CAPABILITY_NAMED_IAM"

# Statuses a stack being created can never leave towards CREATE_COMPLETE.
_DEAD_END_STATUSES = frozenset(
    {
        "CREATE_FAILED",
        "ROLLBACK_IN_PROGRESS",
        "ROLLBACK_FAILED",
        "ROLLBACK_COMPLETE",
        "DELETE_IN_PROGRESS",
        "DELETE_FAILED",
        "DELETE_COMPLETE",
    }
)


class CloudFormationServiceError(ProvisionError):
    pass


class CloudFormationService:
    def __init__(
        self,
        config: AwsConfig,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._config = config
        self._session = aioboto3.Session()
        self._sleep = sleep
        self._clock = clock

    def _client(self) -> Any:
        return self._session.client(
            "cloudformation",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    async def create_stack(
        self,
        *,
        name: str,
        template_body: str,
        capabilities: Optional[Sequence[str]] = None,
        on_failure: str = ON_FAILURE_DELETE,
        tags: Sequence[Tag] = (),
        parameters: Sequence[Parameter] = (),
    ) -> bool:
        """Start creating a stack.

        Returns:
            True when a new stack was started, False when a stack with this name
            already exists (left behind by an interrupted run) and should be
            polled instead.
        """

        kwargs: dict[str, Any] = {
            "StackName": name,
            "TemplateBody": template_body,
            "OnFailure": on_failure,
            "Tags": [t.to_api() for t in tags],
            "Parameters": [p.to_api() for p in parameters],
        }
        if capabilities:
            kwargs["Capabilities"] = list(capabilities)

        try:
            cfn_client: Any = self._client()
            async with cfn_client as cfn:
                resp = await cfn.create_stack(**kwargs)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "AlreadyExistsException":
                logger.warning("stack %s already exists; polling the existing stack", name)
                return False
            logger.exception("CloudFormation create_stack failed")
            raise CloudFormationServiceError(f"Failed to create stack (name={name})") from exc
        except Exception as exc:
            logger.exception("CloudFormation create_stack failed")
            raise CloudFormationServiceError(f"Failed to create stack (name={name})") from exc

        logger.info("creating stack %s (id %s)", name, resp.get("StackId"))
        return True

    async def describe_stack(self, name: str) -> StackDescriptor:
        try:
            cfn_client: Any = self._client()
            async with cfn_client as cfn:
                resp = await cfn.describe_stacks(StackName=name)
        except Exception as exc:
            raise CloudFormationServiceError(f"Failed to describe stack (name={name})") from exc

        stacks = resp.get("Stacks") or []
        if not stacks:
            raise CloudFormationServiceError(f"Stack not found: {name}")
        return StackDescriptor.from_describe_stacks(stacks[0])

    async def poll_stack(
        self,
        name: str,
        *,
        target_status: str = CREATE_COMPLETE,
        timeout_seconds: float,
        interval_seconds: float,
        settle_seconds: float = 0.0,
    ) -> StackDescriptor:
        """Wait for a stack to reach ``target_status`` and return it with its outputs.

        Sleeps ``settle_seconds`` once before the first query (new stacks are not
        immediately describable), then queries every ``interval_seconds`` until
        the target is reached or more than ``timeout_seconds`` have elapsed.
        """

        if settle_seconds > 0:
            await self._sleep(settle_seconds)

        started = self._clock()
        while True:
            try:
                stack = await self.describe_stack(name)
            except CloudFormationServiceError as exc:
                # Be tolerant of eventual consistency / transient errors.
                logger.warning("polling stack %s: %s", name, exc)
                stack = None

            if stack is not None:
                logger.info("stack %s status %s (waiting for %s)", name, stack.status, target_status)
                if stack.status == target_status:
                    for key, value in stack.outputs.items():
                        logger.info("stack output key=[%s], value=[%s]", key, value)
                    return stack
                if target_status == CREATE_COMPLETE and stack.status in _DEAD_END_STATUSES:
                    raise StackFailedError(
                        f"Stack {name} entered {stack.status} while waiting for {target_status}; "
                        "inspect its events in the CloudFormation console"
                    )

            elapsed = self._clock() - started
            if elapsed > timeout_seconds:
                raise PollTimeoutError(
                    f"Timed out after {elapsed:.0f}s waiting for stack {name} to reach {target_status}; "
                    "inspect it manually before running apply again"
                )
            await self._sleep(interval_seconds)
