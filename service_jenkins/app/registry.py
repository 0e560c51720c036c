"""
Provider registry consulted by the certificate issuance host.

Endpoints have the form ``<scheme>://<name>``; only the ``class`` scheme is
served in-process.
"""

from typing import Callable, Dict, Optional, Protocol

from shared.errors import ConfigurationFault
from .authz.gate import Authorizer
from .models import InstanceConfirmation


CLASS_SCHEME = "class"


class InstanceProvider(Protocol):
    """Capabilities the issuance host relies on."""

    def get_provider_scheme(self) -> str:
        ...

    def initialize(self, provider: str, provider_endpoint: Optional[str] = None,
                   ssl_context=None, key_store=None) -> None:
        ...

    def set_authorizer(self, authorizer: Optional[Authorizer]) -> None:
        ...

    def confirm_instance(self, confirmation: InstanceConfirmation) -> InstanceConfirmation:
        ...

    def refresh_instance(self, confirmation: InstanceConfirmation) -> InstanceConfirmation:
        ...


class ProviderRegistry:
    """Maps provider names to factories per endpoint scheme."""

    def __init__(self):
        self._factories: Dict[str, Dict[str, Callable[[], InstanceProvider]]] = {}

    def register(self, name: str, scheme: str = CLASS_SCHEME):
        """Decorator registering a provider factory under ``scheme://name``."""
        def wrapper(factory: Callable[[], InstanceProvider]):
            self._factories.setdefault(scheme, {})[name] = factory
            return factory
        return wrapper

    def create(self, endpoint: str) -> InstanceProvider:
        scheme, sep, name = endpoint.partition("://")
        if not sep or not name:
            raise ConfigurationFault(f"Invalid provider endpoint: {endpoint}")
        factory = self._factories.get(scheme, {}).get(name)
        if factory is None:
            raise ConfigurationFault(f"Unknown provider endpoint: {endpoint}")
        return factory()

    def names(self, scheme: str = CLASS_SCHEME):
        return sorted(self._factories.get(scheme, {}))


# Singleton instance for global access
registry = ProviderRegistry()
