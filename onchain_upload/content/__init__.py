"""Input decoding: files, data URIs and token metadata into (mime, bytes)."""

from .decoder import ContentDescriptor, decode, decode_data_uri  # noqa: F401

__all__ = ["ContentDescriptor", "decode", "decode_data_uri"]
