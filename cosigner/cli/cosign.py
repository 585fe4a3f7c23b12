#!/usr/bin/env python3
"""
Co-signer Command Line Interface

Off-engine tooling for the co-signer role: compute the operation hash a
wallet will check, sign it, and check who signed a given signature.

Usage:
    cosigner hash --to ADDRESS --value N --expire-time T --sequence-id S [--data HEX]
    cosigner hash-batch --recipient ADDRESS:VALUE ... --expire-time T --sequence-id S
    cosigner sign <operation_hash> --private-key KEY
    cosigner recover <operation_hash> <signature>
    cosigner keygen
"""

from typing import Optional, Tuple

import click
from eth_utils import decode_hex

from cosigner import __version__
from cosigner.config import load_config
from cosigner.crypto import (
    PrivateKey,
    batch_operation_hash,
    operation_hash,
    recover_signer,
    sign_operation_hash,
)
from cosigner.exceptions import (
    ConfigurationError,
    InvalidAddressError,
    InvalidKeyError,
    MalformedSignatureError,
)
from cosigner.logger import LogManager


def _decode_hex_arg(value: str, name: str) -> bytes:
    if not value:
        return b""
    try:
        return decode_hex(value)
    except ValueError as e:
        raise click.BadParameter(f"{name} is not hex: {e}")


def _parse_recipient(item: str) -> Tuple[str, int]:
    address, sep, value = item.rpartition(":")
    if not sep:
        raise click.BadParameter(f"Expected ADDRESS:VALUE, got {item!r}")
    try:
        return address, int(value)
    except ValueError:
        raise click.BadParameter(f"Value is not an integer: {value!r}")


@click.group()
@click.version_option(version=__version__, prog_name="cosigner")
@click.option("--config", "-c", "config_path", type=click.Path(), default=None,
              help="Path to cosigner.toml (default: $COSIGNER_CONFIG or ./cosigner.toml)")
@click.pass_context
def cli(ctx, config_path: Optional[str]):
    """Co-signer tooling for two-signer wallets."""
    ctx.ensure_object(dict)
    try:
        cfg = load_config(config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    LogManager().configure(cfg.logging, force=True)
    ctx.obj["config"] = cfg


@cli.command("hash")
@click.option("--to", "to_address", required=True, help="Destination address")
@click.option("--value", type=int, required=True, help="Amount in the smallest unit")
@click.option("--data", default="", help="Hex payload (default: empty)")
@click.option("--expire-time", type=int, required=True, help="Absolute unix expiry (seconds)")
@click.option("--sequence-id", type=int, required=True, help="Wallet sequence id")
@click.option("--prefix", default=None, help="Override the configured single-operation prefix")
@click.pass_context
def hash_cmd(ctx, to_address: str, value: int, data: str, expire_time: int,
             sequence_id: int, prefix: Optional[str]):
    """Print the hash of a single-recipient operation.

    Examples:

        cosigner hash --to 0xAbC... --value 6000000000000000000 --expire-time 1900000000 --sequence-id 1
    """
    native_prefix = ctx.obj["config"].engine.native_prefix
    try:
        op_hash = operation_hash(
            prefix or native_prefix,
            to_address,
            value,
            _decode_hex_arg(data, "data"),
            expire_time,
            sequence_id,
        )
    except (InvalidAddressError, ValueError, TypeError) as e:
        raise click.ClickException(str(e))
    click.echo("0x" + op_hash.hex())


@cli.command("hash-batch")
@click.option("--recipient", "-r", "recipients", multiple=True, required=True,
              help="ADDRESS:VALUE, repeat in delivery order")
@click.option("--expire-time", type=int, required=True, help="Absolute unix expiry (seconds)")
@click.option("--sequence-id", type=int, required=True, help="Wallet sequence id")
@click.option("--prefix", default=None, help="Override the configured batch prefix")
@click.pass_context
def hash_batch_cmd(ctx, recipients: Tuple[str, ...], expire_time: int,
                   sequence_id: int, prefix: Optional[str]):
    """Print the hash of a batch operation."""
    batch_prefix = ctx.obj["config"].engine.batch_prefix
    pairs = [_parse_recipient(r) for r in recipients]
    try:
        op_hash = batch_operation_hash(
            prefix or batch_prefix,
            [a for a, _ in pairs],
            [v for _, v in pairs],
            expire_time,
            sequence_id,
        )
    except (InvalidAddressError, ValueError, TypeError) as e:
        raise click.ClickException(str(e))
    click.echo("0x" + op_hash.hex())


@cli.command("sign")
@click.argument("op_hash")
@click.option("--private-key", envvar="COSIGNER_PRIVATE_KEY", required=True,
              help="Hex private key (or $COSIGNER_PRIVATE_KEY)")
def sign_cmd(op_hash: str, private_key: str):
    """Sign an operation hash and print the 65-byte signature."""
    digest = _decode_hex_arg(op_hash, "operation hash")
    if len(digest) != 32:
        raise click.BadParameter("operation hash must be 32 bytes")
    try:
        key = PrivateKey.from_hex(private_key)
    except InvalidKeyError as e:
        raise click.ClickException(str(e))
    click.echo("0x" + sign_operation_hash(key, digest).hex())


@cli.command("recover")
@click.argument("op_hash")
@click.argument("signature")
def recover_cmd(op_hash: str, signature: str):
    """Print the address that produced SIGNATURE over OP_HASH."""
    digest = _decode_hex_arg(op_hash, "operation hash")
    if len(digest) != 32:
        raise click.BadParameter("operation hash must be 32 bytes")
    try:
        signer = recover_signer(digest, signature)
    except MalformedSignatureError as e:
        raise click.ClickException(f"Malformed signature: {e}")
    if signer is None:
        raise click.ClickException("Signature does not recover to any key")
    click.echo(signer)


@cli.command("keygen")
def keygen_cmd():
    """Generate a secp256k1 keypair (for test wallets)."""
    key = PrivateKey.generate()
    click.echo(f"Address:     {key.address}")
    click.echo(f"Private key: {key.to_hex()}")
    click.echo(click.style("Store the private key offline; anyone holding it can co-sign.", fg="yellow"))


if __name__ == "__main__":
    cli()
