"""
Collection options — behavior configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

from pledge.promise._registry import PromiseRegistry, registry as default_registry


@dataclass(frozen=True, slots=True)
class Options:
    """
    Per-collection configuration.

    Fluent builder pattern — chain methods to configure.

    Example:
        options = Options().with_debug().with_registry(test_registry)

    Note: Immutable — each method returns new Options.
    The promise constructor itself is not an option: it lives in the
    registry so it can be swapped without rebuilding collections.
    """

    debug: bool = False
    registry: PromiseRegistry = default_registry

    def with_debug(self, enabled: bool = True) -> Options:
        """
        Log every dispatched operation at INFO.

        Example:
            logging.basicConfig(level=logging.INFO)
            bands = Collection("bands", engine, Options().with_debug())
        """
        return Options(debug=enabled, registry=self.registry)

    def with_registry(self, registry: PromiseRegistry) -> Options:
        """Use a registry other than the process-wide one."""
        return Options(debug=self.debug, registry=registry)


__all__ = ("Options",)
