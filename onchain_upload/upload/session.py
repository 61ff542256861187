"""
End-to-end logo upload against a deployed contract.

Order of operations:
  1. network identity (warn on unexpected chain id)
  2. bytecode at the target address
  3. ownership (best effort)
  4. optional selector probe
  5. setLogoMIME + resetLogo      (skipped when resuming)
  6. appendLogoChunk loop         (ChunkSubmitter)
  7. finalizeLogo                 (optional)
  8. logoInfo summary             (when exposed)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..config import UploadConfig
from ..content.decoder import ContentDescriptor
from ..contracts.logo import LogoContract, LogoInfo
from ..logging import bind, get_logger, unbind
from .engine import ChunkRecord, ChunkSubmitter

log = get_logger(__name__)


@dataclass
class UploadReport:
    mime: str
    total_bytes: int
    start_offset: int
    final_offset: int
    chunks: List[ChunkRecord] = field(default_factory=list)
    info: Optional[LogoInfo] = None
    finalized: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mime": self.mime,
            "totalBytes": self.total_bytes,
            "startOffset": self.start_offset,
            "finalOffset": self.final_offset,
            "chunks": [
                {
                    "offset": c.offset,
                    "length": c.length,
                    "gas": c.gas,
                    "maxFeePerGas": c.envelope.max_fee_per_gas,
                    "txHash": c.tx_hash,
                    "shrinks": c.shrinks,
                }
                for c in self.chunks
            ],
            "finalized": self.finalized,
            "logoInfo": self.info.to_dict() if self.info else None,
        }


def preflight(contract: LogoContract, *, expected_chain_id: Optional[int], probe: bool, mime: str) -> int:
    """Checks that run once before any write. Returns the node's chain id."""
    chain_id = contract.chain_id
    bind(chain_id=chain_id, contract=contract.address)
    log.info("chainId: %d", chain_id)
    if expected_chain_id is not None and chain_id != expected_chain_id:
        log.warning("chainId is not %d", expected_chain_id, extra={"got": chain_id})

    contract.ensure_deployed()
    contract.check_owner()
    if probe:
        contract.probe_selectors(mime)
    return chain_id


def resume_offset(contract: LogoContract, total: int) -> int:
    """Confirmed byte count as reported by logoInfo(); 0 when unavailable."""
    info = contract.logo_info()
    if info is None:
        log.warning("logoInfo() not implemented; resuming from 0")
        return 0
    if info.raw_bytes > total:
        raise ValueError(
            f"contract already holds {info.raw_bytes} bytes, more than the {total}-byte payload"
        )
    return info.raw_bytes


def upload_logo(
    contract: LogoContract,
    content: ContentDescriptor,
    config: UploadConfig,
    *,
    expected_chain_id: Optional[int] = None,
    probe: bool = True,
    resume: bool = False,
    start_offset: Optional[int] = None,
    finalize: bool = True,
    on_confirmed: Optional[Callable[[ChunkRecord], None]] = None,
) -> UploadReport:
    """
    Run the whole upload. `resume` reads the confirmed offset from logoInfo();
    an explicit `start_offset` wins over it. Either one skips setLogoMIME/resetLogo.
    """
    total = len(content)
    log.info("uploading %d bytes as %s", total, content.mime_type)
    try:
        preflight(contract, expected_chain_id=expected_chain_id, probe=probe, mime=content.mime_type)

        if start_offset is None:
            start_offset = resume_offset(contract, total) if resume else 0
        resuming = resume or start_offset > 0

        if not resuming:
            contract.set_logo_mime(content.mime_type)
            contract.reset_logo()

        submitter = ChunkSubmitter(contract.chunk_sink(), config, on_confirmed=on_confirmed)
        final = submitter.submit(content.data, start_offset=start_offset)

        report = UploadReport(
            mime=content.mime_type,
            total_bytes=total,
            start_offset=start_offset,
            final_offset=final,
            chunks=list(submitter.records),
        )
        if finalize:
            contract.finalize_logo()
            report.finalized = True

        report.info = contract.logo_info()
        if report.info is None:
            log.info("logoInfo() not implemented, skip")
        else:
            log.info("logoInfo", extra=report.info.to_dict())
        log.info("done", extra={"chunks": len(report.chunks), "bytes": final - start_offset})
        return report
    finally:
        unbind("chain_id", "contract")


__all__ = ["UploadReport", "preflight", "resume_offset", "upload_logo"]
