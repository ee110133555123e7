# src/substrate/base_substrate.py - v1
"""Abstract ephemeral-service substrate interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from schemagen.core.models import ResourceHandle


class BaseServiceSubstrate(ABC):
    """Creates disposable database instances.

    Implementations block until the instance accepts connections and
    return a handle whose release action destroys it.
    """

    @abstractmethod
    def provision(
        self,
        image_ref: str,
        database_name: str,
        user: str,
        secret: str,
    ) -> ResourceHandle:
        """Start a fresh instance.

        Raises:
            ProvisionFailure: Image unavailable, startup failure, port conflict.
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Substrate identifier for logs."""
