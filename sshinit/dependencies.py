"""Dependency injection container for sshinit.

Every shared object (registry, resolver, background loop) is built here
and passed down explicitly; there are no module-level singletons.
"""

import logging
from dataclasses import dataclass

from sshinit.config import Config
from sshinit.protocols import SecretStore, Transport
from sshinit.services.asyncssh_transport import AsyncSSHTransport
from sshinit.services.elevation import ElevationPlanner
from sshinit.services.launcher import ConnectionLauncher
from sshinit.services.openssh import OpenSSHTransport
from sshinit.services.registry import SessionRegistry
from sshinit.services.resolver import CredentialResolver
from sshinit.services.runner import BackgroundLoop
from sshinit.services.store import KeyringSecretStore

logger = logging.getLogger(__name__)


@dataclass
class Dependencies:
    """Container for sshinit dependencies.

    Example:
        deps = Dependencies.create()
        handler = SSHCommandHandler(deps)
        ...
        deps.cleanup()
    """

    config: Config
    store: SecretStore
    resolver: CredentialResolver
    planner: ElevationPlanner
    registry: SessionRegistry
    runner: BackgroundLoop
    transport: Transport
    launcher: ConnectionLauncher

    @classmethod
    def create(cls) -> "Dependencies":
        """Create dependencies with configuration from the environment."""
        return cls.from_config(Config.from_env())

    @classmethod
    def from_config(
        cls,
        config: Config,
        store: SecretStore | None = None,
        transport: Transport | None = None,
    ) -> "Dependencies":
        """Create dependencies with custom configuration.

        Args:
            config: Custom Config instance
            store: Secret store (default: keyring under the configured service)
            transport: Transport (default: the one named in settings)
        """
        settings = config.settings
        if store is None:
            store = KeyringSecretStore(service=settings.keyring_service)

        resolver = CredentialResolver(store, timeout=settings.credential_timeout)
        planner = ElevationPlanner(
            resolver,
            markers=settings.elevation_markers,
            reuse_login_secret=settings.elevation_reuses_login,
        )
        registry = SessionRegistry()
        runner = BackgroundLoop()

        if transport is None:
            transport = cls._create_transport(config, store)
        launcher = ConnectionLauncher(registry, transport, runner)

        return cls(
            config=config,
            store=store,
            resolver=resolver,
            planner=planner,
            registry=registry,
            runner=runner,
            transport=transport,
            launcher=launcher,
        )

    @staticmethod
    def _create_transport(config: Config, store: SecretStore) -> Transport:
        settings = config.settings
        if settings.transport == "asyncssh":
            logger.debug("Using asyncssh transport")
            return AsyncSSHTransport(store, config.host_keys)
        logger.debug("Using OpenSSH transport (%s)", settings.ssh_binary)
        return OpenSSHTransport(
            store,
            config.host_keys,
            ssh_binary=settings.ssh_binary,
            terminate_grace=settings.terminate_grace,
        )

    def cleanup(self) -> None:
        """Stop running sessions and release worker threads."""
        self.runner.stop()
        self.registry.clear()
        self.resolver.close()
