"""
cctp-permit: generate a Permit2 PermitSingle signature for delegated transfers.

In production the owner signs in their own wallet; this helper exists for
testing.

Usage:
    cctp-permit --from <owner_private_key> --amount 5.0
    cctp-permit --from <owner_private_key> --amount 1.0 --deadline-hours 24
"""

import json
import os
import shlex
from datetime import datetime, timezone
from typing import Optional

import click
from eth_account import Account
from eth_utils import is_address

from ..adapters.evm.constants import amount_to_value, get_network_profile
from ..adapters.evm.signatures import create_permit, sign_permit_single, split_signature
from ..config import load_env_files
from ..logging_utils import configure_logging

_RULE = "═" * 47


def _fail(ctx: click.Context, message: str) -> None:
    click.secho(f"Error generating Permit2 signature: {message}", fg="red", err=True)
    ctx.exit(1)


def _default_spender() -> Optional[str]:
    """The relayer address, derived from SOURCE_SPONSOR_PRIVATE_KEY when set."""
    key = os.getenv("SOURCE_SPONSOR_PRIVATE_KEY")
    if not key:
        return None
    return Account.from_key(key).address


@click.command(name="cctp-permit")
@click.option("--from", "from_key", required=True, help="Owner private key (hex, with or without 0x).")
@click.option("--amount", required=True, help='Amount of USDC to authorize, e.g. "1.0".')
@click.option("--token", default=None, help="Token address (default: the network's USDC).")
@click.option("--spender", default=None, help="Spender address (default: the relayer from SOURCE_SPONSOR_PRIVATE_KEY).")
@click.option("--nonce", default=0, type=click.IntRange(min=0), show_default=True, help="Permit2 allowance nonce.")
@click.option("--deadline-hours", default=1, type=click.IntRange(min=1), show_default=True,
              help="Hours until the permit expires.")
@click.option("--chain-id", default=None, type=int, help="Chain id (default: from NETWORK_TYPE).")
@click.pass_context
def main(
    ctx: click.Context,
    from_key: str,
    amount: str,
    token: Optional[str],
    spender: Optional[str],
    nonce: int,
    deadline_hours: int,
    chain_id: Optional[int],
) -> None:
    """Sign a Permit2 PermitSingle authorizing the relayer to pull USDC."""
    configure_logging()
    load_env_files()

    try:
        profile = get_network_profile(os.getenv("NETWORK_TYPE") or "Testnet")
    except ValueError as e:
        _fail(ctx, str(e))

    key = from_key if from_key.startswith("0x") else f"0x{from_key}"
    try:
        owner = Account.from_key(key).address
    except Exception as e:
        _fail(ctx, f"invalid private key ({e.__class__.__name__})")

    try:
        value = amount_to_value(amount=amount)
    except ValueError as e:
        _fail(ctx, str(e))

    token = token or profile.usdc
    spender = spender or _default_spender()
    if not spender:
        _fail(ctx, "--spender is required when SOURCE_SPONSOR_PRIVATE_KEY is not set")
    for label, address in (("--token", token), ("--spender", spender)):
        if not is_address(address):
            _fail(ctx, f"{label} is not a valid address: {address!r}")
    chain_id = chain_id or profile.chain_id

    permit = create_permit(owner, spender, token, value, nonce, deadline_hours * 3600)

    click.echo(f"\nGenerating Permit2 Signature\n{_RULE}\n")
    click.echo(f"Chain ID:      {chain_id}")
    click.echo(f"User Address:  {owner}")
    click.echo(f"Token Address: {token}")
    click.echo(f"Spender:       {spender}")
    click.echo(f"Amount:        {amount} USDC ({value} smallest units)")
    click.echo(f"Nonce:         {nonce}")
    deadline_iso = datetime.fromtimestamp(permit.deadline, tz=timezone.utc).isoformat()
    click.echo(f"Deadline:      {deadline_iso} ({deadline_hours} hour(s) from now)\n")

    try:
        signature = sign_permit_single(key, permit, chain_id)
    except ValueError as e:
        _fail(ctx, str(e))
    components = split_signature(signature)

    permit_json = permit.model_dump_json()
    click.secho("Signature generated successfully!\n", fg="green")
    click.echo(f"Signature: {signature}")
    click.echo(f"  v: {components.v}")
    click.echo(f"  r: {components.r}")
    click.echo(f"  s: {components.s}\n")
    click.echo("Permit Data (JSON):")
    click.echo(json.dumps(json.loads(permit_json), indent=2))
    click.echo("\nExample command:")
    click.echo(
        f"cctp-transfer --amount {amount} --from {owner} --sig {signature} "
        f"--permit-data {shlex.quote(permit_json)}"
    )
    click.echo(_RULE)


if __name__ == "__main__":
    main()
