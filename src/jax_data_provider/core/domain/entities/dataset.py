from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .base import StreamSpec

if TYPE_CHECKING:
    from jax_data_provider.core.ports.data_provider import DataProviderPort

__all__ = ["ProviderInfo"]


@dataclass(frozen=True)
class ProviderInfo:
    """Declarations of a provider, collected in one place."""

    batch_size: int
    data: tuple[StreamSpec, ...]
    label: tuple[StreamSpec, ...] = ()
    num_samples: int | None = None

    @property
    def data_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.data)

    @property
    def label_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.label)

    @property
    def has_labels(self) -> bool:
        return bool(self.label)

    @classmethod
    def from_provider(cls, provider: DataProviderPort) -> ProviderInfo:
        return cls(
            batch_size=provider.get_batch_size(),
            data=tuple(provider.provide_data()),
            label=tuple(provider.provide_label()),
            num_samples=getattr(provider, "num_samples", None),
        )
