import json
import os

import pytest

from onchain_upload import logging as ulog
from onchain_upload.config import UploadConfig
from onchain_upload.content.decoder import ContentDescriptor
from onchain_upload.contracts.logo import LogoContract
from onchain_upload.errors import AuthorizationError, ChunkTooSmallError, RevertedError
from onchain_upload.rpc.eth import EthRpc
from onchain_upload.tx.send import Signer
from onchain_upload.upload.session import resume_offset, upload_logo

from conftest import CONTRACT, DEV_KEY, OTHER_ADDRESS, SEL, FakeNode


def _contract(node: FakeNode, cap: int = 10**18) -> LogoContract:
    return LogoContract(EthRpc(node), CONTRACT, Signer.from_key(DEV_KEY), cap_wei=cap)


def _selectors(node: FakeNode):
    names = {v: k for k, v in SEL.items()}
    return [names[t["data"][:10]] for t in node.txs]


def test_full_upload_writes_everything_in_order(node):
    data = os.urandom(50_000)
    report = upload_logo(_contract(node), ContentDescriptor("image/png", data), UploadConfig(), expected_chain_id=8453)

    assert bytes(node.logo) == data
    assert node.mime == "image/png"
    assert node.sealed
    assert _selectors(node) == [
        "setLogoMIME",
        "resetLogo",
        "appendLogoChunk",
        "appendLogoChunk",
        "appendLogoChunk",
        "finalizeLogo",
    ]
    assert [len(c) for c in node.appended_chunks()] == [20_000, 20_000, 10_000]
    assert report.final_offset == 50_000
    assert report.finalized
    assert report.info.raw_bytes == 50_000
    assert report.info.is_sealed


def test_every_transaction_stays_under_cap(node):
    cap = 2 * 10**15
    upload_logo(_contract(node, cap=cap), ContentDescriptor("image/png", os.urandom(30_000)), UploadConfig(fee_cap_wei=cap))
    for tx in node.txs:
        assert tx["gas"] * tx["maxFeePerGas"] <= cap


def test_node_rejecting_large_chunks_triggers_shrinking():
    node = FakeNode(max_chunk=8_000)
    data = os.urandom(12_000)
    report = upload_logo(_contract(node), ContentDescriptor("image/png", data), UploadConfig())
    assert [len(c) for c in node.appended_chunks()] == [6_000, 6_000]
    assert bytes(node.logo) == data
    assert report.chunks[0].shrinks == 1


def test_resume_skips_reset_and_continues_from_logo_info():
    node = FakeNode()
    data = os.urandom(50_000)
    node.mime = "image/png"
    node.logo = bytearray(data[:20_000])

    report = upload_logo(_contract(node), ContentDescriptor("image/png", data), UploadConfig(), resume=True)

    assert "setLogoMIME" not in _selectors(node)
    assert "resetLogo" not in _selectors(node)
    assert report.start_offset == 20_000
    assert b"".join(node.appended_chunks()) == data[20_000:]
    assert bytes(node.logo) == data


def test_explicit_start_offset_wins():
    node = FakeNode()
    data = os.urandom(3_000)
    node.logo = bytearray(data[:1_000])
    report = upload_logo(
        _contract(node), ContentDescriptor("image/png", data), UploadConfig(), resume=True, start_offset=1_000
    )
    assert report.start_offset == 1_000
    assert bytes(node.logo) == data


def test_resume_offset_larger_than_payload():
    node = FakeNode()
    node.logo = bytearray(b"x" * 10)
    with pytest.raises(ValueError):
        resume_offset(_contract(node), 5)


def test_resume_without_logo_info_starts_at_zero():
    assert resume_offset(_contract(FakeNode(has_logo_info=False)), 100) == 0


def test_owner_mismatch_stops_before_any_write():
    node = FakeNode(owner=OTHER_ADDRESS)
    with pytest.raises(AuthorizationError):
        upload_logo(_contract(node), ContentDescriptor("image/png", b"abc"), UploadConfig())
    assert node.txs == []



def test_session_fields_leave_the_log_context(node):
    ulog.clear_context()
    ulog.bind(component="batch-job")
    upload_logo(_contract(node), ContentDescriptor("image/png", b"abc"), UploadConfig())
    assert ulog.context() == {"component": "batch-job"}

    with pytest.raises(AuthorizationError):
        upload_logo(_contract(FakeNode(owner=OTHER_ADDRESS)), ContentDescriptor("image/png", b"abc"), UploadConfig())
    assert ulog.context() == {"component": "batch-job"}
    ulog.clear_context()

def test_chain_mismatch_only_warns():
    node = FakeNode(chain_id=1)
    upload_logo(_contract(node), ContentDescriptor("image/png", b"abc"), UploadConfig(), expected_chain_id=8453)
    assert {t["chainId"] for t in node.txs} == {1}


def test_no_finalize(node):
    report = upload_logo(_contract(node), ContentDescriptor("image/png", b"abc"), UploadConfig(), finalize=False)
    assert not node.sealed
    assert not report.finalized
    assert "finalizeLogo" not in _selectors(node)


def test_probe_can_be_skipped(node):
    upload_logo(_contract(node), ContentDescriptor("image/png", b"abc"), UploadConfig(), probe=False)
    probed = [p for m, p in node.calls if m == "eth_call" and p[0]["data"].startswith(SEL["resetLogo"])]
    assert probed == []


def test_floor_failure_leaves_confirmed_prefix():
    node = FakeNode(max_chunk=100)
    with pytest.raises(ChunkTooSmallError) as ei:
        upload_logo(
            _contract(node), ContentDescriptor("image/png", os.urandom(2_000)), UploadConfig(chunk_size=1_024)
        )
    assert ei.value.offset == 0
    assert _selectors(node) == ["setLogoMIME", "resetLogo"]
    assert not node.sealed


def test_reverted_chunk_propagates():
    # 0: setLogoMIME, 1: resetLogo, 2: first chunk, 3: second chunk
    node = FakeNode(revert_sends=[3])
    with pytest.raises(RevertedError):
        upload_logo(_contract(node), ContentDescriptor("image/png", os.urandom(45_000)), UploadConfig())
    assert len(node.logo) == 20_000


def test_missing_logo_info_is_reported_as_none():
    node = FakeNode(has_logo_info=False)
    report = upload_logo(_contract(node), ContentDescriptor("image/png", b"abc"), UploadConfig())
    assert report.info is None
    assert report.to_dict()["logoInfo"] is None


def test_report_is_json_serialisable(node):
    seen = []
    report = upload_logo(
        _contract(node),
        ContentDescriptor("image/svg+xml", b"<svg/>"),
        UploadConfig(),
        on_confirmed=lambda r: seen.append(r.tx_hash),
    )
    out = json.loads(json.dumps(report.to_dict()))
    assert out["mime"] == "image/svg+xml"
    assert out["totalBytes"] == 6
    assert [c["txHash"] for c in out["chunks"]] == seen
    assert out["logoInfo"]["isSealed"] is True
