"""Command line interface for cross-chain deposits.

Usage:
    python -m crossdeposit chains
    python -m crossdeposit modules
    python -m crossdeposit required-state --module AUTOSWAP --chain 421614
    python -m crossdeposit deposit --module AUTOSWAP --from-chain 84532 --to-chain 421614 --amount 5.00
    python -m crossdeposit status --request-id <id>
    python -m crossdeposit balances --owner 0x...

Environment variables:
    COORDINATOR_URL: Coordinator base URL (default: https://tee.wall8.xyz)
    COORDINATOR_API_KEY: API key sent with orchestration requests
    OWNER_PRIVATE_KEY: Key used to sign deposits
    DRY_RUN: Use the in-process simulated coordinator (default: true)
"""

import argparse
import asyncio
import logging
from typing import Optional

from crossdeposit.balances import fetch_balances
from crossdeposit.chains import ChainRegistry, build_default_registry
from crossdeposit.config import Settings, get_settings
from crossdeposit.coordinator import CoordinatorClient, get_coordinator
from crossdeposit.errors import PollingTimedOut, WorkflowError, format_error
from crossdeposit.models import OrchestrationStatus
from crossdeposit.modules import create_default_registry
from crossdeposit.wallet import build_chain_rpcs, get_wallet_signer
from crossdeposit.workflow import WorkflowController, classify_run

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_TIMED_OUT = 3


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _print_status(status: OrchestrationStatus) -> None:
    print(f"[Status Update] {status.status.value}")
    if status.updated_at or status.created_at:
        print(f"   Updated: {status.updated_at or status.created_at}")
    if status.error_message:
        print(f"   Error: {status.error_message}")


class DepositCli:
    """Wires settings, registries and clients for one CLI invocation."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        chains: Optional[ChainRegistry] = None,
        coordinator: Optional[CoordinatorClient] = None,
    ):
        self.settings = settings or get_settings()
        self.chains = chains or build_default_registry(self.settings)
        self.modules = create_default_registry()
        self.coordinator = coordinator or get_coordinator(self.settings, self.chains, self.modules)

    def build_controller(self, with_wallet: bool = True) -> WorkflowController:
        signer = None
        rpcs = None
        if with_wallet:
            rpcs = build_chain_rpcs(self.chains, self.settings)
            signer = get_wallet_signer(self.settings, self.chains, rpcs)
        return WorkflowController(
            self.chains,
            self.modules,
            self.coordinator,
            signer=signer,
            rpcs=rpcs,
            settings=self.settings,
        )

    async def chains_command(self, args) -> int:
        for chain in self.chains:
            print(f"{chain.chain_id:>8}  {chain.display_name:<18} {chain.token_symbol} {chain.token_address}")
        return EXIT_OK

    async def modules_command(self, args) -> int:
        for kind in await self.coordinator.list_modules():
            module = self.modules.get(kind)
            print(f"{kind.value:<18} deposit: {module.deposit_strategy.value}")
        return EXIT_OK

    async def required_state_command(self, args) -> int:
        controller = self.build_controller(with_wallet=False)
        controller.select_module(args.module, args.chain)
        state = await controller.resolve_required_state()
        print(f"Module:   {state.module_kind.value}")
        print(f"Chain:    {state.chain_id}")
        print(f"Address:  {state.module_address}")
        print(f"Config:   {state.config_input_type}")
        for field in state.required_fields:
            print(f"  - {field.name}: {field.type} = {state.config_template.get(field.name)}")
        return EXIT_OK

    async def deposit_command(self, args) -> int:
        controller = self.build_controller()
        controller.select_module(args.module, args.to_chain)
        await controller.resolve_required_state()
        intent = controller.set_intent(args.from_chain, args.amount, args.owner)

        required_state = controller.current.required_state
        print(f"Depositing {intent.amount} USDC: chain {intent.source_chain_id} -> "
              f"{required_state.module_kind.value} on chain {required_state.chain_id} "
              f"({classify_run(intent, required_state).value})")

        record = await controller.create_orchestration()
        print(f"Request ID: {record.request_id}")
        print(f"Source account:      {record.account_address_on_source_chain}")
        print(f"Destination account: {record.account_address_on_destination_chain}")

        await controller.submit_deposit()
        print("Deposit submitted, coordinator notified")

        if args.no_poll:
            return EXIT_OK

        status = await controller.poll_status(on_update=_print_status)
        print(f"Orchestration {status.status.value}")
        return EXIT_OK

    async def status_command(self, args) -> int:
        controller = self.build_controller(with_wallet=False)
        status = await controller.resume_polling(
            args.request_id,
            on_update=_print_status,
        )
        print(f"Orchestration {status.status.value}")
        return EXIT_OK

    async def balances_command(self, args) -> int:
        owner = args.owner
        if not owner:
            owner = get_wallet_signer(self.settings, self.chains, {}).address
        rpcs = build_chain_rpcs(self.chains, self.settings)
        balances = await fetch_balances(owner, self.chains, rpcs)
        for balance in balances.values():
            value = balance.amount if balance.ok else f"unavailable ({balance.error})"
            print(f"{balance.display_name:<18} {value} {balance.token_symbol}")
        return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crossdeposit",
        description="Cross-chain USDC deposits into strategy modules",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("chains", help="List supported chains")
    sub.add_parser("modules", help="List available modules")

    required = sub.add_parser("required-state", help="Show a module's required state on a chain")
    required.add_argument("--module", required=True, help="Module kind (e.g. AUTOSWAP)")
    required.add_argument("--chain", type=int, default=None, help="Destination chain id")

    deposit = sub.add_parser("deposit", help="Run a full deposit")
    deposit.add_argument("--module", required=True, help="Module kind (e.g. AUTOSWAP, BOND)")
    deposit.add_argument("--from-chain", type=int, required=True, help="Source chain id")
    deposit.add_argument("--to-chain", type=int, default=None, help="Destination chain id")
    deposit.add_argument("--amount", required=True, help="USDC amount, e.g. 5.00")
    deposit.add_argument("--owner", default=None, help="Owner address (default: wallet address)")
    deposit.add_argument("--no-poll", action="store_true", help="Exit after the deposit is notified")

    status = sub.add_parser("status", help="Poll an orchestration by request id")
    status.add_argument("--request-id", required=True, help="Orchestration request id")

    balances = sub.add_parser("balances", help="Show USDC balances on all chains")
    balances.add_argument("--owner", default=None, help="Owner address (default: wallet address)")

    return parser


async def run_command(args, cli: Optional[DepositCli] = None) -> int:
    """Dispatch a parsed command and map errors to exit codes."""
    cli = cli or DepositCli()
    handler = getattr(cli, f"{args.command.replace('-', '_')}_command")
    try:
        return await handler(args)
    except PollingTimedOut as e:
        print(f"{e.user_message} Request ID: {e.request_id}")
        return EXIT_TIMED_OUT
    except WorkflowError as e:
        logger.debug(f"Command failed: {e.detail}")
        print(f"Error: {format_error(e.user_message, cli.settings.max_error_length)}")
        return EXIT_FAILED
    except RuntimeError as e:
        print(f"Error: {e}")
        return EXIT_USAGE
    finally:
        await cli.coordinator.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(get_settings())
    return asyncio.run(run_command(args))
