from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class for every failure that aborts an apply run."""


class ConfigError(ProvisionError):
    """The plan file or the runtime configuration is malformed or incomplete."""


class IdentityMismatchError(ProvisionError):
    """The AWS caller differs from the identity recorded in the plan."""


class PollTimeoutError(ProvisionError):
    """An asynchronous resource did not reach its target status in time."""


class StackFailedError(PollTimeoutError):
    """A stack entered a status from which the target status is unreachable."""


class PartialProgressError(ProvisionError):
    """A step returned without producing the outputs it is expected to record."""
