"""
Adapters between the domain model and external representations.

The datastore wire format is snake_case; see `wire` for the translation.
"""

from .wire import (
    camel_to_snake,
    decode_job,
    decode_message,
    decode_user,
    encode_job,
    encode_message,
    encode_user,
    snake_to_camel,
)

__all__ = [
    "camel_to_snake",
    "decode_job",
    "decode_message",
    "decode_user",
    "encode_job",
    "encode_message",
    "encode_user",
    "snake_to_camel",
]
