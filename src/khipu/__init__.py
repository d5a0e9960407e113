"""khipu: tokenizing payload codec.

Payload content is stored under a random token; only the encrypted
token travels on the wire.
"""

from khipu.codec import TokenizingCodec, ZlibCodec
from khipu.payload import Payload
from khipu.pipeline import CodecChain, CodecContext, PipelineOptions, build_pipeline

__version__ = "0.1.0"

__all__ = [
    "CodecChain",
    "CodecContext",
    "Payload",
    "PipelineOptions",
    "TokenizingCodec",
    "ZlibCodec",
    "build_pipeline",
]
