"""
cctp-transfer: run one CCTP transfer from the command line.

Usage:
    cctp-transfer --amount 1.0
    cctp-transfer --amount 0.5 --to 0x<recipient>
    cctp-transfer --amount 1.0 --from 0x<owner> --sig 0x<signature> --permit-data '<json>'
    cctp-transfer --amount 1.0 --from 0x<owner> --sig unauthenticated

Exit code 0 on success, 1 on any validation or transfer failure.
"""

import asyncio
import logging
from typing import Optional

import click
from eth_utils import is_address

from ..adapters.evm.constants import amount_to_value, domain_name, value_to_amount
from ..adapters.evm.schemas import Permit
from ..adapters.evm.signatures import split_signature
from ..clients.iris_client import IrisClient
from ..config import RelayConfig, load_config
from ..engine.events import (
    AttestationReceivedEvent,
    AuthorizationVerifiedEvent,
    BaseEvent,
    EventBus,
    SourceSubmittedEvent,
    TransferStartedEvent,
)
from ..engine.exceptions import ConfigurationError
from ..engine.orchestrator import TransferOrchestrator
from ..logging_utils import configure_logging, redact
from ..schemas.authorization import UNAUTHENTICATED_TOKEN, Authenticated, Unauthenticated
from ..schemas.transfers import TransferRequest, TransferResult, normalize_recipient

logger = logging.getLogger(__name__)

_RULE = "─" * 60

NON_PRODUCTION_BANNER = (
    "!!! NON-PRODUCTION MODE: --sig unauthenticated skips Permit2 signature "
    "verification. Never use this against real funds. !!!"
)


async def print_progress(event: BaseEvent) -> None:
    """EventBus handler echoing phase transitions."""
    if isinstance(event, TransferStartedEvent):
        amount = value_to_amount(value=event.amount)
        if event.funded_by_relayer:
            click.secho(
                f"Initiating burn of {amount} USDC for {event.debited_address}, paid from the "
                f"RELAYER balance ({event.relayer_address}): no permit is redeemed.",
                fg="yellow",
            )
        else:
            click.echo(f"Initiating burn of {amount} USDC (debiting {event.debited_address})...")
    elif isinstance(event, AuthorizationVerifiedEvent):
        if event.unauthenticated:
            click.secho("Authorization accepted WITHOUT verification (unauthenticated).", fg="yellow")
        elif event.reconstructed_permit:
            click.secho("Signature verified against a reconstructed permit.", fg="yellow")
        else:
            click.echo("Permit2 signature verified.")
    elif isinstance(event, SourceSubmittedEvent):
        click.echo(f"Source transaction: {event.source_tx}")
        click.echo("Waiting for Circle attestation (this may take 1-3 minutes)...")
    elif isinstance(event, AttestationReceivedEvent):
        click.echo(f"Attestation received: {event.attestation.attestation_id}")
        click.echo("Completing transfer on the destination chain...")


async def run_transfer(config: RelayConfig, request: TransferRequest, event_bus: Optional[EventBus] = None) -> TransferResult:
    """Wire the EVM adapters and Iris client from ``config`` and execute ``request``."""
    async with IrisClient(base_url=config.iris_api_url) as iris:
        orchestrator = TransferOrchestrator.from_config(config, iris, event_bus=event_bus)
        return await orchestrator.execute(request)


def _fail(ctx: click.Context, message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    ctx.exit(1)


@click.command(name="cctp-transfer")
@click.option("--amount", default=None, help='Amount of USDC to transfer, e.g. "1.0".')
@click.option("--to", "to", default=None,
              help="Recipient: 0x + 40 hex (EVM) or 64 hex (32-byte). Defaults to the relayer.")
@click.option("--from", "from_", default=None, help="Token owner to debit (delegated mode).")
@click.option("--sig", default=None, help='Owner Permit2 signature, or "unauthenticated" (testing only).')
@click.option("--permit-data", default=None, help="JSON permit the signature covers (from cctp-permit).")
@click.pass_context
def main(
    ctx: click.Context,
    amount: Optional[str],
    to: Optional[str],
    from_: Optional[str],
    sig: Optional[str],
    permit_data: Optional[str],
) -> None:
    """Transfer USDC across chains with Circle CCTP."""
    configure_logging()

    # -- input validation (no I/O) -----------------------------------------
    if not amount:
        _fail(ctx, "--amount is required")
    try:
        amount_to_value(amount=amount)
    except ValueError as e:
        _fail(ctx, str(e))

    if to:
        try:
            normalize_recipient(to)
        except ValueError as e:
            _fail(ctx, str(e))

    if (from_ is None) != (sig is None):
        _fail(ctx, "--from and --sig must be given together for delegated transfers")

    authorization = None
    if from_ is not None:
        if not is_address(from_):
            _fail(ctx, f"Invalid --from address {from_!r}")
        if sig.strip().lower() == UNAUTHENTICATED_TOKEN:
            authorization = Unauthenticated()
            click.secho(NON_PRODUCTION_BANNER, fg="yellow", bold=True, err=True)
        else:
            try:
                split_signature(sig)
            except ValueError as e:
                _fail(ctx, f"Invalid --sig: {e}")
            authorization = Authenticated(signature=sig)

    permit = None
    if permit_data:
        if from_ is None:
            _fail(ctx, "--permit-data requires --from and --sig")
        try:
            permit = Permit.model_validate_json(permit_data)
        except ValueError as e:
            _fail(ctx, f"Invalid --permit-data: {e}")
    elif isinstance(authorization, Authenticated):
        click.secho(
            "Warning: no --permit-data given; the signature will be checked against a "
            "reconstructed permit (nonce 0, one-hour deadline).",
            fg="yellow", err=True,
        )

    request = TransferRequest(
        amount=amount,
        destination_address=to,
        source_address=from_,
        authorization=authorization,
        permit=permit,
    )
    logger.debug("Transfer request: %s", redact(request.model_dump(mode="json")))

    # -- configuration -------------------------------------------------------
    try:
        config = load_config()
    except ConfigurationError as e:
        _fail(ctx, str(e))

    click.echo(
        f"Starting CCTP transfer ({config.network_type.value}: "
        f"{domain_name(config.source_domain)} -> {domain_name(config.destination_domain)})"
    )
    click.echo(_RULE)
    click.echo(f"Amount:    {amount} USDC")
    click.echo(f"Recipient: {to or '(relayer wallet)'}")
    if isinstance(authorization, Unauthenticated):
        click.echo(f"Owner:     {from_} (unauthenticated: the relayer's USDC is burned)")
    elif from_:
        click.echo(f"Owner:     {from_} (delegated)")
    click.echo(_RULE)

    event_bus = EventBus()
    event_bus.subscribe_all(print_progress)
    try:
        result = asyncio.run(run_transfer(config, request, event_bus))
    except ConfigurationError as e:
        _fail(ctx, str(e))

    # -- report ----------------------------------------------------------------
    click.echo(_RULE)
    if not result.success:
        click.secho(f"Transfer failed: {result.error}", fg="red", err=True)
        ctx.exit(1)

    click.secho("Transfer completed successfully!", fg="green")
    click.echo(f"   Source TX:      {result.source_tx}")
    if config.explorer_url:
        click.echo(f"   Explorer:       {config.explorer_url.rstrip('/')}/tx/{result.source_tx}")
    if result.attestation_id:
        click.echo(f"   Attestation ID: {result.attestation_id}")
    click.echo(f"   Destination TX: {result.destination_tx}")
    if isinstance(authorization, Unauthenticated):
        click.secho(NON_PRODUCTION_BANNER, fg="yellow", bold=True, err=True)


if __name__ == "__main__":
    main()
