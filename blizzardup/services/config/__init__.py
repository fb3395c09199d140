"""Configuration package (Facade).

Re-exports the public config types so the rest of the codebase imports from a
single, stable path:

	from blizzardup.services.config import AwsConfig, ProvisionConfig
"""

from blizzardup.services.config.aws_config import AwsConfig
from blizzardup.services.config.provision_config import ProvisionConfig

__all__ = ["AwsConfig", "ProvisionConfig"]
