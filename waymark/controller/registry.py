"""
Metadata Registry

Keyed store for controller and route descriptors. Written while controller
classes are being defined, read by the route compiler at bootstrap and
sealed before traffic is served.

Decorators write to ``default_registry`` unless given another registry;
tests build their own (or call ``reset()``) for isolation.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..faults import RegistrySealedFault
from .descriptors import (
    ControllerDescriptor,
    ParameterDescriptor,
    RouteDescriptor,
)

logger = logging.getLogger("waymark.registry")


class MetadataRegistry:
    """
    Owner of all routing descriptors.

    Controller descriptors are keyed by class identity; route descriptors
    by ``(class, method_name)`` and kept in registration order. Reads never
    validate: a missing entry is ``None`` or an empty list.
    """

    def __init__(self):
        self._controllers: Dict[type, ControllerDescriptor] = {}
        self._routes: Dict[type, Dict[str, RouteDescriptor]] = {}
        self._sealed = False

    # ========================================================================
    # Phase
    # ========================================================================

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Freeze the registry; every later write raises RegistrySealedFault."""
        if not self._sealed:
            logger.debug(
                "Sealing metadata registry (%d controllers, %d routes)",
                len(self._controllers),
                sum(len(r) for r in self._routes.values()),
            )
        self._sealed = True

    def reset(self) -> None:
        """Drop all descriptors and unseal."""
        self._controllers.clear()
        self._routes.clear()
        self._sealed = False

    clear = reset

    def _check_writable(self, operation: str) -> None:
        if self._sealed:
            raise RegistrySealedFault(operation)

    # ========================================================================
    # Controllers
    # ========================================================================

    def set_controller_descriptor(self, controller_type: type, descriptor: ControllerDescriptor) -> None:
        """Store the descriptor for ``controller_type``, replacing any previous one."""
        self._check_writable(f"register controller {controller_type.__name__}")
        if controller_type in self._controllers:
            logger.debug("Replacing controller descriptor for %s", controller_type.__name__)
        self._controllers[controller_type] = descriptor

    def get_controller_descriptor(self, controller_type: type) -> Optional[ControllerDescriptor]:
        return self._controllers.get(controller_type)

    def controllers(self) -> List[ControllerDescriptor]:
        """All controller descriptors, in registration order."""
        return list(self._controllers.values())

    # ========================================================================
    # Routes
    # ========================================================================

    def set_route_descriptor(
        self,
        controller_type: type,
        method_name: str,
        descriptor: RouteDescriptor,
    ) -> RouteDescriptor:
        """
        Merge ``descriptor`` into the route stored for ``method_name``.

        A field defined in the new descriptor overwrites the stored one.
        ``parameters`` is replaced only by a non-empty list, so callers
        pass the full accumulated list or nothing.

        Returns:
            The stored (merged) descriptor
        """
        self._check_writable(f"register route {controller_type.__name__}.{method_name}")
        routes = self._routes.setdefault(controller_type, {})
        existing = routes.get(method_name) or RouteDescriptor(method_name=method_name)
        merged = existing.merge(descriptor)
        routes[method_name] = merged
        return merged

    def add_parameter(
        self,
        controller_type: type,
        method_name: str,
        parameter: ParameterDescriptor,
    ) -> None:
        """Append one parameter binding, creating the route descriptor if needed."""
        self._check_writable(f"add parameter to {controller_type.__name__}.{method_name}")
        routes = self._routes.setdefault(controller_type, {})
        route = routes.get(method_name)
        if route is None:
            route = routes[method_name] = RouteDescriptor(method_name=method_name)
        route.parameters.append(parameter)

    def get_route_descriptors(self, controller_type: type) -> List[RouteDescriptor]:
        return list(self._routes.get(controller_type, {}).values())

    def get_route_descriptor(self, controller_type: type, method_name: str) -> Optional[RouteDescriptor]:
        return self._routes.get(controller_type, {}).get(method_name)

    # ========================================================================
    # Builder API
    # ========================================================================

    def register_controller(self, controller_type: type, base_path: str = "") -> ControllerDescriptor:
        """
        Register a controller without decorators.

        Example:
            ```python
            registry.register_controller(ItemsController, "/items")
            registry.register_route(
                ItemsController,
                RouteDescriptor("list_items", path="", http_method=HttpMethod.GET),
            )
            ```
        """
        descriptor = ControllerDescriptor(base_path=base_path, controller_type=controller_type)
        self.set_controller_descriptor(controller_type, descriptor)
        return descriptor

    def register_route(self, controller_type: type, descriptor: RouteDescriptor) -> RouteDescriptor:
        return self.set_route_descriptor(controller_type, descriptor.method_name, descriptor)

    def __repr__(self) -> str:
        return (
            f"MetadataRegistry(controllers={len(self._controllers)}, "
            f"sealed={self._sealed})"
        )


default_registry = MetadataRegistry()
