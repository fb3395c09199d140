from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Sequence

from blizzardup import display
from blizzardup.models import Member, Plan, ResourceKind
from blizzardup.services.cancellation import (
    CancellationToken,
    install_interrupt_handler,
    remove_interrupt_handler,
)
from blizzardup.services.config import ProvisionConfig
from blizzardup.services.errors import PartialProgressError
from blizzardup.services.identity_service import StsService, check_identity
from blizzardup.services.plan_store import PlanStore, assign_default_names, encode_plan
from blizzardup.services.setup.steps import ProvisionStep, StepContext, build_steps


logger = logging.getLogger(__name__)


class ApplyOutcome(str, Enum):
    DECLINED = "declined"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"


class ApplyService:
    """Creates the resources of a plan, resuming wherever an earlier run stopped.

    Steps run strictly in order. A step whose outputs are already in the plan is
    skipped without touching AWS; every completed step is persisted before the
    next one starts. Failures abort the run and leave completed steps standing.
    The cancellation token is only consulted once everything has been created
    and the worker nodes listed.
    """

    def __init__(
        self,
        *,
        plan: Plan,
        store: PlanStore,
        sts: StsService,
        context: StepContext,
        token: CancellationToken,
        skip_prompt: bool = False,
        handle_signals: bool = False,
        confirm: Callable[[], bool] = display.confirm_apply,
        steps: Optional[Sequence[ProvisionStep]] = None,
    ) -> None:
        self._plan = plan
        self._store = store
        self._sts = sts
        self._ctx = context
        self._token = token
        self._skip_prompt = skip_prompt
        self._handle_signals = handle_signals
        self._confirm = confirm
        self._steps = list(steps) if steps is not None else build_steps()

    @property
    def plan(self) -> Plan:
        return self._plan

    @property
    def _config(self) -> ProvisionConfig:
        return self._ctx.config

    async def run(self) -> ApplyOutcome:
        plan = self._plan
        resources = plan.aws_resources

        current = await self._sts.get_identity()
        resources.identity = check_identity(resources.identity, current)
        assign_default_names(plan)
        await self._store.persist(plan)

        display.loaded_plan(self._store.path, encode_plan(plan))
        if not self._skip_prompt and not self._confirm():
            display.declined()
            return ApplyOutcome.DECLINED

        loop = asyncio.get_running_loop()
        if self._handle_signals:
            install_interrupt_handler(self._token, loop=loop)
        try:
            return await self._apply()
        finally:
            if self._handle_signals:
                remove_interrupt_handler(loop=loop)

    async def _apply(self) -> ApplyOutcome:
        logger.info("creating resources (with plan path %s)", self._store.path)
        created = await self.provision()

        members = await self._list_workers()
        if ResourceKind.AUTOSCALING_GROUP in created:
            logger.info("waiting for worker nodes to bootstrap")
            await self._ctx.sleep(self._config.bootstrap_wait_seconds)

        if self._token.cancelled:
            logger.warning("received %s", self._token.signal_name or "interrupt")
            display.teardown_hint(self._store.path)
            return ApplyOutcome.INTERRUPTED

        logger.info("apply complete (%d worker nodes listed)", len(members))
        return ApplyOutcome.COMPLETED

    async def provision(self) -> list[ResourceKind]:
        """Run every step not yet recorded in the plan; returns the kinds created."""

        resources = self._plan.aws_resources
        created: list[ResourceKind] = []

        for step in self._steps:
            if step.is_satisfied(resources):
                logger.info("skipping %s: already recorded in the plan", step.kind.value)
                display.step_skipped(step.title)
                if step.finish is not None:
                    await step.finish(self._ctx)
                continue

            display.step(step.title)
            outputs = await step.action(self._ctx)
            written = resources.record(**step.extract(outputs))
            if written:
                await self._store.persist(self._plan)

            missing = resources.missing_fields(step.kind)
            if missing:
                raise PartialProgressError(
                    f"Step '{step.title}' finished without recording {', '.join(missing)} "
                    f"(outputs: {sorted(outputs)})"
                )

            if step.finish is not None:
                await step.finish(self._ctx)
            created.append(step.kind)

        return created

    async def _list_workers(self) -> list[Member]:
        resources = self._plan.aws_resources
        asg_name = resources.cloudformation_asg_workers_logical_id
        if asg_name is None:
            return []

        members = await self._ctx.ec2.list_group_members_until(
            asg_name,
            desired=self._plan.machine.nodes,
            max_attempts=self._config.list_max_attempts,
            delay_seconds=self._config.list_delay_seconds,
        )

        key_path = resources.ec2_key_path or "<ec2-key-path>"
        display.ssh_access(members=members, key_path=key_path, region=resources.region)
        return members
