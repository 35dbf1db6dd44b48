
from .batch_consumer import BatchConsumerPort, DeviceShard
from .data_provider import DataProviderPort
from .metrics_sink import MetricsSinkPort
from .native_iterator import NativeIteratorPort

__all__ = [
	"BatchConsumerPort",
	"DataProviderPort",
	"DeviceShard",
	"MetricsSinkPort",
	"NativeIteratorPort",
]
