"""
Module Registry

Holds the modules of an application by identifier and by provided feature,
and resolves the order in which default modules are registered.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Set

from .exceptions import (
    CircularDependencyError,
    DuplicateFeatureError,
    DuplicateModuleIdError,
    FeatureNotProvidedError,
    InvalidDependencyError,
    MissingDependencyError,
    ReservedIdentifierError,
    UnknownModuleIdError,
)
from .module_definition import ApplicationModule, ModuleDependency

logger = logging.getLogger(__name__)


@dataclass
class PendingModule:
    """A module waiting to be added while default modules are resolved."""
    sequence: int
    module_id: str
    module: ApplicationModule

    @property
    def class_name(self) -> str:
        return type(self.module).__name__


@dataclass
class ResolutionContext:
    """
    Scratch state passed through the recursive default module resolution.

    Modules are tracked by the sequence number assigned when they enter the
    context, never by object identity.
    """
    by_provides: Dict[str, PendingModule] = field(default_factory=dict)
    added: Set[int] = field(default_factory=set)
    stack: List[PendingModule] = field(default_factory=list)
    _next_sequence: int = 0

    def track(self, module_id: str, module: ApplicationModule) -> PendingModule:
        """Assign a sequence number to a module and record its provides."""
        pending = PendingModule(self._next_sequence, module_id, module)
        self._next_sequence += 1
        for feature in module.provides():
            self.by_provides[feature] = pending
        return pending

    def is_on_stack(self, pending: PendingModule) -> bool:
        return any(entry.sequence == pending.sequence for entry in self.stack)


class ModuleRegistry:
    """
    Registry for application modules.

    Modules are stored in registration order, which is also the order their
    init() hooks run in. Every feature maps to exactly one module.
    """

    def __init__(self, is_reserved: Optional[Callable[[str], bool]] = None):
        self._modules: Dict[str, ApplicationModule] = {}
        self._modules_by_provides: Dict[str, ApplicationModule] = {}
        self._is_reserved = is_reserved or (lambda module_id: False)

    def register(self, module: ApplicationModule, module_id: str) -> None:
        """
        Register a module under an identifier.

        Args:
            module: The module to register
            module_id: Unique identifier for the module

        Raises:
            DuplicateModuleIdError: If the identifier is already used
            ReservedIdentifierError: If the identifier is a reserved name
            InvalidDependencyError: If a dependency is not a ModuleDependency
            MissingDependencyError: If a required feature is not provided yet
            DuplicateFeatureError: If a provided feature is already provided
        """
        module_class = type(module).__name__

        if module_id in self._modules:
            raise DuplicateModuleIdError(
                f"A module with the identifier '{module_id}' already exists in this application."
            )

        if self._is_reserved(module_id):
            raise ReservedIdentifierError(
                f"Invalid module identifier '{module_id}'. Module identifiers must not be "
                f"the same as any of the property names of this application object."
            )

        for depend in module.depends():
            if not isinstance(depend, ModuleDependency):
                raise InvalidDependencyError(
                    f"Module {module_class} contains a dependency that is not a ModuleDependency"
                )
            if depend.is_required() and depend.feature not in self._modules_by_provides:
                raise MissingDependencyError(
                    f"Module {module_class} depends on feature '{depend.feature}' which is "
                    f"not provided by any module in this application.",
                    module_class,
                    depend.feature,
                )

        provides = module.provides()
        for feature in provides:
            provider = self._modules_by_provides.get(feature)
            if provider is not None:
                provider_class = type(provider).__name__
                raise DuplicateFeatureError(
                    f"Module feature '{feature}' already provided by {provider_class}.",
                    feature,
                    provider_class,
                )

        for feature in provides:
            self._modules_by_provides[feature] = module
        self._modules[module_id] = module

        logger.debug(f"Registered module '{module_id}' ({module_class}) providing {provides}")

    def add_default_modules(self, modules: Mapping[str, ApplicationModule]) -> List[str]:
        """
        Register modules so every module follows the providers of its dependencies.

        Modules already in this registry are treated as added, so an
        application may pre-register a module that overrides a default one.

        Args:
            modules: Ordered mapping of module identifier to module instance

        Returns:
            Module identifiers in the order they were registered

        Raises:
            CircularDependencyError: If modules transitively depend on themselves
            MissingDependencyError: If a required feature has no provider
        """
        context = ResolutionContext()

        pending_modules = [
            context.track(module_id, module) for module_id, module in modules.items()
        ]

        # registered modules take part in resolution but are never re-added
        for module_id, module in self._modules.items():
            context.added.add(context.track(module_id, module).sequence)

        registered = []
        for pending in pending_modules:
            if pending.sequence not in context.added:
                self._add_default_module(context, pending, registered)

        return registered

    def _add_default_module(self,
                            context: ResolutionContext,
                            pending: PendingModule,
                            registered: List[str]) -> None:
        """Add a default module after recursively adding its dependencies."""
        if context.is_on_stack(pending):
            chain = [entry.class_name for entry in context.stack]
            chain.append(pending.class_name)
            raise CircularDependencyError(chain)

        context.stack.append(pending)

        for depend in pending.module.depends():
            if not isinstance(depend, ModuleDependency):
                raise InvalidDependencyError(
                    f"Module {pending.class_name} contains a dependency that is not a ModuleDependency"
                )

            provider = context.by_provides.get(depend.feature)
            if provider is not None:
                if provider.sequence not in context.added:
                    self._add_default_module(context, provider, registered)
            elif depend.is_required():
                raise MissingDependencyError(
                    f"Module {pending.class_name} depends on '{depend.feature}' but no "
                    f"module provides this feature.",
                    pending.class_name,
                    depend.feature,
                )

        # all dependencies loaded
        context.stack.pop()

        context.added.add(pending.sequence)
        self.register(pending.module, pending.module_id)
        registered.append(pending.module_id)

    def get_by_id(self, module_id: str) -> ApplicationModule:
        """
        Get a module by its identifier.

        Raises:
            UnknownModuleIdError: If no module is registered under the identifier
        """
        try:
            return self._modules[module_id]
        except KeyError:
            raise UnknownModuleIdError(module_id) from None

    def get_by_feature(self, feature: str) -> ApplicationModule:
        """
        Get the module providing a feature.

        Raises:
            FeatureNotProvidedError: If no module provides the feature
        """
        try:
            return self._modules_by_provides[feature]
        except KeyError:
            raise FeatureNotProvidedError(feature) from None

    def has_id(self, module_id: str) -> bool:
        return module_id in self._modules

    def has_feature(self, feature: str) -> bool:
        return feature in self._modules_by_provides

    def ids(self) -> List[str]:
        """Get module identifiers in registration order."""
        return list(self._modules.keys())

    def items(self):
        return self._modules.items()

    def __iter__(self) -> Iterator[ApplicationModule]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._modules

    def describe(self) -> List[Dict]:
        """Get information about every module in registration order."""
        return [
            {
                'id': module_id,
                'class': type(module).__name__,
                'provides': module.provides(),
                'depends': [
                    f"{depend.feature}{'' if depend.is_required() else '?'}"
                    for depend in module.depends()
                ],
                'status': module.get_status().value,
                'last_error': module.get_error_message(),
            }
            for module_id, module in self._modules.items()
        ]
