"""
onchain_upload.cli.main
=======================

`onchain-upload`: push an image into a deployed contract chunk by chunk,
keeping every transaction under a fee cap.

Examples
--------
    $ onchain-upload --rpc https://mainnet.base.org upload \
        --address 0xYourContract --file logo.txt --pk 0x...
    $ onchain-upload decode logo.txt
    $ onchain-upload info --address 0xYourContract
    $ onchain-upload info --address 0xYourContract --token-id 1
    $ onchain-upload upload --address 0x... --file logo.png --resume

Configuration
-------------
- RPC URL      : `--rpc` or env `UPLOADER_RPC_URL` / `BASE_RPC`
- Signing key  : `--pk` or env `UPLOADER_PRIVATE_KEY` / `PRIVATE_KEY`
- Fee cap      : `--fee-cap` or env `UPLOADER_FEE_CAP_WEI` / `TX_FEE_CAP_WEI` (default 1 ETH)
- Floor        : `--min-chunk` or env `UPLOADER_MIN_CHUNK` / `MIN_CHUNK` (default 512)
- Log format   : `--log-format` or env `UPLOADER_LOG_FORMAT` (json|text)
- Log file     : `--log-file` or env `UPLOADER_LOG_FILE` (JSON lines)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer

from .. import logging as ulog
from ..config import DEFAULT_CHAIN_ID, NodeConfig, UploadConfig
from ..content.decoder import decode
from ..contracts.logo import LogoContract
from ..errors import UploadError
from ..rpc.eth import EthRpc
from ..rpc.http import RpcClient
from ..tx.send import Signer
from ..upload.session import upload_logo
from ..version import __version__

app = typer.Typer(
    name="onchain-upload",
    help="Upload an image to a contract in fee-capped, self-shrinking chunks.",
    no_args_is_help=True,
    add_completion=False,
)

log = ulog.get_logger("cli")

__all__ = ["app", "main"]


@dataclass
class Ctx:
    rpc: Optional[str]
    chain_id: int
    timeout: Optional[float]


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


@app.callback()
def _root(
    ctx: typer.Context,
    rpc: Optional[str] = typer.Option(
        None, "--rpc", help="Node HTTP JSON-RPC URL.", envvar=["UPLOADER_RPC_URL", "BASE_RPC"]
    ),
    chain_id: int = typer.Option(
        DEFAULT_CHAIN_ID, "--chain-id", help="Expected chain ID (warns on mismatch).", envvar="UPLOADER_CHAIN_ID"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds."),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json | text"),
    log_level: str = typer.Option("INFO", "--log-level", envvar="UPLOADER_LOG_LEVEL"),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write JSON logs to this file.", envvar="UPLOADER_LOG_FILE"
    ),
) -> None:
    """Set effective configuration for this CLI process."""
    ulog.configure(
        json=None if log_format is None else log_format.strip().lower() == "json",
        level=log_level,
        file_path=log_file,
    )
    ulog.clear_context()
    ctx.obj = Ctx(rpc=rpc, chain_id=chain_id, timeout=timeout)


def _node(ctx: typer.Context, **overrides: Any) -> NodeConfig:
    c: Ctx = ctx.obj
    return NodeConfig.from_env(
        rpc_url=c.rpc, expected_chain_id=c.chain_id, request_timeout=c.timeout, **overrides
    )


def _fail(e: BaseException) -> typer.Exit:
    log.error("%s", e, exc_info=e)
    return typer.Exit(code=1)


@app.command("version")
def version() -> None:
    """Print the CLI version."""
    typer.echo(f"onchain-upload {__version__}")


@app.command("decode")
def decode_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Image or data-URI file"),
    mime: Optional[str] = typer.Option(None, "--mime", help="MIME override"),
) -> None:
    """Decode a file offline and print what would be uploaded."""
    try:
        detected = decode(file)
    except UploadError as e:
        raise _fail(e)
    content = detected.with_mime(mime)
    _print_json(
        {
            "file": str(file),
            "bytes": len(content),
            "detected": detected.mime_type,
            "mime": content.mime_type,
        }
    )


@app.command("info")
def info(
    ctx: typer.Context,
    address: str = typer.Option(..., "--address", help="Target contract address (0x...)"),
    token_id: Optional[int] = typer.Option(None, "--token-id", help="Also read tokenURI(ID)"),
) -> None:
    """Print logoInfo() of the target contract, and tokenURI(ID) with --token-id."""
    try:
        node = _node(ctx)
        with RpcClient(node.rpc_url, timeout=node.request_timeout, max_retries=node.max_retries) as rpc:
            eth = EthRpc(rpc)
            signer = Signer.from_key(node.private_key) if node.private_key else None
            contract = LogoContract(eth, address, signer, cap_wei=UploadConfig().fee_cap_wei)
            contract.ensure_deployed()
            res = contract.logo_info()
            uri = contract.token_uri(token_id) if token_id is not None else None
    except (UploadError, ValueError) as e:
        raise _fail(e)
    out: Any = res.to_dict() if res else None
    if token_id is not None:
        out = {"logoInfo": out, "tokenURI": uri}
    _print_json(out)


@app.command("upload")
def upload(
    ctx: typer.Context,
    address: str = typer.Option(..., "--address", help="Target contract address (0x...)"),
    file: Path = typer.Option(..., "--file", exists=True, dir_okay=False, readable=True, help="Image or data-URI file"),
    mime: Optional[str] = typer.Option(None, "--mime", help="MIME override (default: detected)"),
    chunk: Optional[int] = typer.Option(
        None, "--chunk", help="Chunk size in bytes (default 20000; may be below --min-chunk)"
    ),
    min_chunk: Optional[int] = typer.Option(None, "--min-chunk", help="Smallest chunk before giving up"),
    fee_cap: Optional[str] = typer.Option(None, "--fee-cap", help="Per-tx fee cap in wei (int or 0x-hex)"),
    pk: Optional[str] = typer.Option(None, "--pk", help="Signer private key (0x...)"),
    probe: bool = typer.Option(True, "--probe/--no-probe", help="eth_call each write selector first"),
    resume: bool = typer.Option(False, "--resume", help="Continue from logoInfo().rawBytes"),
    start_offset: Optional[int] = typer.Option(None, "--start-offset", help="Continue from this byte offset"),
    finalize: bool = typer.Option(True, "--finalize/--no-finalize", help="Call finalizeLogo() at the end"),
) -> None:
    """Upload FILE into the contract at ADDRESS and print a JSON summary."""
    try:
        node = _node(ctx, private_key=pk)
        config = UploadConfig.with_overrides(
            UploadConfig.from_env(), fee_cap_wei=fee_cap, chunk_size=chunk, min_chunk=min_chunk
        )
        detected = decode(file)
        content = detected.with_mime(mime)
        log.info(
            "loaded %s: %d bytes, detected: %s, using MIME: %s",
            file.name,
            len(content),
            detected.mime_type,
            content.mime_type,
        )
        signer = Signer.from_key(node.require_private_key())

        with ulog.trace_scope(), RpcClient(
            node.rpc_url, timeout=node.request_timeout, max_retries=node.max_retries
        ) as rpc:
            log.info("RPC: %s", node.rpc_url)
            contract = LogoContract(
                EthRpc(rpc),
                address,
                signer,
                cap_wei=config.fee_cap_wei,
                receipt_timeout=node.receipt_timeout,
                poll_interval=node.poll_interval,
            )
            report = upload_logo(
                contract,
                content,
                config,
                expected_chain_id=node.expected_chain_id,
                probe=probe,
                resume=resume,
                start_offset=start_offset,
                finalize=finalize,
            )
    except (UploadError, TimeoutError, ValueError) as e:
        raise _fail(e)
    _print_json(report.to_dict())


def main() -> None:  # pragma: no cover - console entry
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
