"""
Imagery archive clients and adapters.

Clients are resolved per provider:
- an explicit "module:callable" factory (--client-factory or
  '<provider>.client_factory' in settings.json) always wins
- otherwise the bundled client, if the provider ships one (wayback)
"""

import importlib
from typing import Any, Callable, Optional

from histimagery.archives.adapters import (
    ArchiveAdapter,
    DateLayeredAdapter,
    QuadtreeAdapter,
    create_adapter,
)
from histimagery.archives.source_registry import ProviderCapability, get_provider, provider_names
from histimagery.archives.wayback import WaybackClient
from histimagery.settings import get_setting

BUNDLED_CLIENTS = {
    'wayback': WaybackClient.from_settings,
}


def load_client_factory(spec: str) -> Callable[[], Any]:
    """
    Import a client factory given as "package.module:callable".

    Raises:
        ValueError: if the factory string is malformed or the attribute is not callable
        ImportError: if the module cannot be imported
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Client factory must look like 'module:callable', got '{spec}'")

    module = importlib.import_module(module_name)
    factory = module
    for part in attr.split("."):
        factory = getattr(factory, part, None)
        if factory is None:
            raise ValueError(f"{module_name} has no attribute '{attr}'")
    if not callable(factory):
        raise ValueError(f"{spec} is not callable")
    return factory


def create_client(provider: ProviderCapability, factory_spec: Optional[str] = None) -> Any:
    """
    Build the archive client for a provider.

    Raises:
        ValueError: if the provider has no bundled client and no factory is configured
    """
    spec = factory_spec or get_setting(f"{provider.cli_name}.client_factory")
    if spec:
        return load_client_factory(spec)()
    if provider.bundled_client and provider.cli_name in BUNDLED_CLIENTS:
        return BUNDLED_CLIENTS[provider.cli_name]()
    raise ValueError(
        f"No client available for provider '{provider.cli_name}'. "
        f"Pass --client-factory MODULE:CALLABLE or set '{provider.cli_name}.client_factory' in settings.json"
    )


__all__ = [
    'ArchiveAdapter',
    'DateLayeredAdapter',
    'QuadtreeAdapter',
    'WaybackClient',
    'create_adapter',
    'create_client',
    'get_provider',
    'load_client_factory',
    'provider_names',
]
