"""
onchain-upload
Convenience exports for the most common APIs.
"""

from .version import __version__  # noqa: F401

# Config & errors
from .config import NodeConfig, UploadConfig  # noqa: F401
from .errors import (  # noqa: F401
    AuthorizationError,
    ChunkTooSmallError,
    ConfigError,
    ContractNotFoundError,
    DecodeError,
    RevertedError,
    RpcError,
    SimulationFailure,
    UploadError,
)

# Core
from .content.decoder import ContentDescriptor, decode  # noqa: F401
from .fees.envelope import FeeEnvelope, FeeSignals, compute_envelope  # noqa: F401
from .upload.engine import ChunkRecord, ChunkSink, ChunkSubmitter  # noqa: F401

# Node & contract
from .rpc.http import RpcClient  # noqa: F401
from .rpc.eth import EthRpc  # noqa: F401
from .tx.send import Signer  # noqa: F401
from .contracts.logo import LogoContract, LogoInfo  # noqa: F401
from .upload.session import UploadReport, upload_logo  # noqa: F401

__all__ = [
    "__version__",
    # Config / errors
    "NodeConfig", "UploadConfig",
    "UploadError", "ConfigError", "DecodeError", "RpcError", "SimulationFailure",
    "ChunkTooSmallError", "RevertedError", "AuthorizationError", "ContractNotFoundError",
    # Core
    "ContentDescriptor", "decode",
    "FeeEnvelope", "FeeSignals", "compute_envelope",
    "ChunkRecord", "ChunkSink", "ChunkSubmitter",
    # Node / contract
    "RpcClient", "EthRpc", "Signer", "LogoContract", "LogoInfo",
    "UploadReport", "upload_logo",
]
