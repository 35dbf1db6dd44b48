from __future__ import annotations


class DataProviderError(Exception):
    """Base class for errors raised by data providers and batches."""


class NameNotFoundError(DataProviderError, KeyError):
    """`Batch.get` was asked for a stream name that is neither data nor label."""

    def __init__(self, name: str, available: tuple[str, ...] = ()) -> None:
        self.name = name
        self.available = tuple(available)
        super().__init__(f"no data or label stream named {name!r} (available: {list(self.available)})")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0])


class ProtocolViolationError(DataProviderError):
    """The start/done/next sequence was driven out of order.

    Only cheap cases are detected. Driving one provider from two iteration
    sequences at once is undefined and never detected.
    """


class ShapeMismatchError(DataProviderError):
    """A tensor or slice range does not fit the declared stream shapes."""


class PartitionMismatchError(DataProviderError):
    """Slice descriptors do not line up with the tensors or with each other."""
