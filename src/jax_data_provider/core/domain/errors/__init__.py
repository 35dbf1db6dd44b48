from .provider import (
	DataProviderError,
	NameNotFoundError,
	PartitionMismatchError,
	ProtocolViolationError,
	ShapeMismatchError,
)

__all__ = [
	"DataProviderError",
	"NameNotFoundError",
	"PartitionMismatchError",
	"ProtocolViolationError",
	"ShapeMismatchError",
]
