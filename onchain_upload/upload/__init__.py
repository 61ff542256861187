"""
Chunk submission: pure state transitions (`states`), the sequential engine
(`engine`) and the end-to-end logo flow (`session`).
"""

from .engine import ChunkRecord, ChunkSink, ChunkSubmitter  # noqa: F401
from .session import UploadReport, upload_logo  # noqa: F401
from .states import CandidateChunk, Phase  # noqa: F401

__all__ = [
    "CandidateChunk",
    "Phase",
    "ChunkRecord",
    "ChunkSink",
    "ChunkSubmitter",
    "UploadReport",
    "upload_logo",
]
