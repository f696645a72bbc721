"""Configuration module for sshinit.

Provides focused classes for different configuration concerns:
- Config: Main configuration class (aggregates all components)
- HostKeyVerifier: Manages SSH host key verification
- Settings: Environment variable configuration
"""

from sshinit.config.host_keys import HostKeyVerifier
from sshinit.config.main import Config
from sshinit.config.settings import Settings

__all__ = ["Config", "HostKeyVerifier", "Settings"]
