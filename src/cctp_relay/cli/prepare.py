"""
cctp-prepare: check that the environment is ready for a transfer.

Reports every required variable (keys masked to their first 10 characters),
the resolved network and contract addresses, and exits 1 when anything is
missing or invalid.
"""

import os

import click

from ..adapters.evm.constants import domain_name
from ..config import REQUIRED_VARIABLES, create_config, load_env_files
from ..engine.exceptions import ConfigurationError
from ..logging_utils import configure_logging, mask_secret

_RULE = "─" * 60


@click.command(name="cctp-prepare")
@click.pass_context
def main(ctx: click.Context) -> None:
    """Check relay configuration and print the resolved addresses."""
    configure_logging()
    load_env_files()

    click.echo("Preparing for transfer...")
    click.echo(_RULE)
    click.echo("\nRequired Configuration:")

    missing = False
    for _field, var in REQUIRED_VARIABLES:
        value = os.getenv(var)
        if not value:
            click.secho(f"  [missing] {var}", fg="red")
            missing = True
            continue
        display = mask_secret(value) if var.endswith("PRIVATE_KEY") else value
        click.secho(f"  [ok]      {var}: {display}", fg="green")

    if missing:
        click.echo(f"\n{_RULE}")
        click.secho("Not ready yet. Set the missing variables in .env or .env.local.", fg="yellow")
        ctx.exit(1)

    try:
        config = create_config()
    except ConfigurationError as e:
        click.secho(f"\nInvalid configuration: {e}", fg="red")
        ctx.exit(1)

    click.echo("\nResolved Network:")
    click.echo(f"  Network type:        {config.network_type.value}")
    click.echo(f"  Source chain id:     {config.source_chain_id}")
    click.echo(f"  Source domain:       {config.source_domain} ({domain_name(config.source_domain)})")
    click.echo(f"  Destination domain:  {config.destination_domain} ({domain_name(config.destination_domain)})")
    click.echo(f"  Attestation API:     {config.iris_api_url}")

    click.echo("\nContract Addresses:")
    click.echo(f"  CCTP version:                 V{config.cctp_version}")
    click.echo(f"  USDC:                         {config.usdc_address}")
    click.echo(f"  TokenMessenger:               {config.token_messenger_address}")
    click.echo(f"  MessageTransmitter (src):     {config.source_message_transmitter_address}")
    if config.destination_is_aptos:
        click.echo(f"  Aptos receive script (dst):   {config.aptos_receive_message_script}")
    else:
        click.echo(f"  MessageTransmitterV2 (dst):   {config.destination_message_transmitter_address}")
    click.echo(f"  Permit2:                      {config.permit2_address}")
    click.echo(
        f"  Permit reconstruction:        "
        f"{'allowed' if config.allow_permit_reconstruction else 'disabled (strict)'}"
    )

    click.echo(f"\n{_RULE}")
    click.secho("Ready to transfer!", fg="green")
    click.echo("\nNext steps:")
    click.echo("  1. Fund both relayer wallets with native gas tokens")
    click.echo("  2. Get testnet USDC on the source chain (if needed)")
    click.echo("  3. Run: cctp-transfer --amount 1.0")


if __name__ == "__main__":
    main()
