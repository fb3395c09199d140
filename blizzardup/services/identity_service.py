from __future__ import annotations

import logging
from typing import Any, Optional

import aioboto3

from blizzardup.models import Identity
from blizzardup.services.config import AwsConfig
from blizzardup.services.errors import IdentityMismatchError, ProvisionError


logger = logging.getLogger(__name__)


class StsServiceError(ProvisionError):
    pass


def check_identity(recorded: Optional[Identity], current: Identity) -> Identity:
    """Return the identity to keep in the plan.

    AWS calls for one plan must always come from the same caller; a plan
    created by another account or role is rejected before anything is created.
    """

    if recorded is None:
        return current
    if recorded != current:
        raise IdentityMismatchError(
            f"Plan identity {recorded.role_arn} (account {recorded.account_id}) does not match "
            f"the current caller {current.role_arn} (account {current.account_id})"
        )
    return recorded


class StsService:
    def __init__(self, config: AwsConfig) -> None:
        self._config = config
        self._session = aioboto3.Session()

    def _client(self) -> Any:
        return self._session.client(
            "sts",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    async def get_identity(self) -> Identity:
        try:
            sts_client: Any = self._client()
            async with sts_client as sts:
                resp = await sts.get_caller_identity()
        except Exception as exc:
            logger.exception("STS get_caller_identity failed")
            raise StsServiceError("Failed to load the AWS caller identity; check your credentials") from exc

        identity = Identity.from_sts_response(resp)
        logger.info("current AWS identity: %s (account %s)", identity.role_arn, identity.account_id)
        return identity
