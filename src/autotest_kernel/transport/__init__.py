from .json_channel import (
    ChannelClosedError,
    ChannelError,
    ChannelProtocolError,
    JsonChannel,
    WirePayloadTooLargeError,
    build_channel_pair,
)

__all__ = [
    "ChannelClosedError",
    "ChannelError",
    "ChannelProtocolError",
    "JsonChannel",
    "WirePayloadTooLargeError",
    "build_channel_pair",
]
