from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable

import aioboto3
from botocore.exceptions import ClientError
from tqdm import tqdm

from blizzardup.models import Member
from blizzardup.services.config import AwsConfig
from blizzardup.services.errors import ProvisionError


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Ec2ServiceError(ProvisionError):
    pass


class Ec2Service:
    _LIVE_STATES = ("pending", "running")

    def __init__(self, config: AwsConfig, *, sleep: Sleep = asyncio.sleep) -> None:
        self._config = config
        self._session = aioboto3.Session()
        self._sleep = sleep

    def _client(self) -> Any:
        return self._session.client(
            "ec2",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    async def create_key_pair(self, *, name: str, path: Path) -> Path:
        """Create an EC2 key pair and save its private key readable by the owner only."""

        try:
            ec2_client: Any = self._client()
            async with ec2_client as ec2:
                resp = await ec2.create_key_pair(KeyName=name)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "InvalidKeyPair.Duplicate":
                raise Ec2ServiceError(
                    f"EC2 key pair {name} already exists but its private key was never saved; "
                    "delete the key pair and run apply again"
                ) from exc
            logger.exception("EC2 create_key_pair failed")
            raise Ec2ServiceError(f"Failed to create EC2 key pair (name={name})") from exc
        except Exception as exc:
            logger.exception("EC2 create_key_pair failed")
            raise Ec2ServiceError(f"Failed to create EC2 key pair (name={name})") from exc

        material = str(resp.get("KeyMaterial") or "")
        if not material:
            raise Ec2ServiceError(f"EC2 returned no key material for key pair {name}")

        # a previous 0400 file cannot be reopened for writing
        path.unlink(missing_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o400)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(material)

        logger.info("created EC2 key pair %s (private key %s)", name, path)
        return path

    async def list_group_members(self, asg_name: str) -> list[Member]:
        filters = [
            {"Name": "tag:aws:autoscaling:groupName", "Values": [asg_name]},
            {"Name": "instance-state-name", "Values": list(self._LIVE_STATES)},
        ]
        members: list[Member] = []
        try:
            ec2_client: Any = self._client()
            async with ec2_client as ec2:
                paginator = ec2.get_paginator("describe_instances")
                async for page in paginator.paginate(Filters=filters):
                    for reservation in page.get("Reservations", []):
                        members.extend(Member.from_ec2_instance(i) for i in reservation.get("Instances", []))
        except Exception as exc:
            logger.exception("EC2 describe_instances failed")
            raise Ec2ServiceError(f"Failed to list instances of autoscaling group {asg_name}") from exc

        return members

    async def list_group_members_until(
        self,
        asg_name: str,
        *,
        desired: int,
        max_attempts: int,
        delay_seconds: float,
    ) -> list[Member]:
        """List group members until at least ``desired`` show up.

        Instances join the group asynchronously, so an exhausted budget is not
        an error: the last observation is returned and the shortfall logged.
        """

        members: list[Member] = []
        with tqdm(total=desired, desc="Waiting for worker nodes", unit="node") as progress:
            for attempt in range(1, max_attempts + 1):
                logger.info("listing worker nodes of %s (attempt %d, target %d)", asg_name, attempt, desired)
                members = await self.list_group_members(asg_name)
                progress.n = min(len(members), desired)
                progress.refresh()
                if len(members) >= desired:
                    return members
                if attempt < max_attempts:
                    logger.info("only got %d of %d worker nodes, retrying", len(members), desired)
                    await self._sleep(delay_seconds)

        logger.warning(
            "autoscaling group %s has %d of %d worker nodes after %d attempts; continuing",
            asg_name,
            len(members),
            desired,
            max_attempts,
        )
        return members
