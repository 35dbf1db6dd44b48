from .array_files import array_provider_from_file, load_named_arrays
from .array_provider import ArrayDataProvider
from .native_provider import NativeIteratorDataProvider

__all__ = [
	"ArrayDataProvider",
	"NativeIteratorDataProvider",
	"array_provider_from_file",
	"load_named_arrays",
]
