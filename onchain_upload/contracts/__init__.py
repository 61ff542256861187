from .logo import LogoChunkSink, LogoContract, LogoInfo, encode_call  # noqa: F401

__all__ = ["LogoContract", "LogoChunkSink", "LogoInfo", "encode_call"]
