from chatinstance_cli.streaming.delta_aggregator import DeltaAggregator
from chatinstance_cli.streaming.frame_decoder import (
    DONE_SENTINEL,
    FrameDecoder,
    StreamEventRecord,
)

__all__ = [
    "DONE_SENTINEL",
    "DeltaAggregator",
    "FrameDecoder",
    "StreamEventRecord",
]
