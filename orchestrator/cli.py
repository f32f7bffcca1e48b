"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for bio-token valuation and issuance.

- Provides argparse-based CLI with one subcommand per operation
- Loads configuration from CLI and environment (.env honoured)
- Exit code 0 on success, 1 on validation or issuance failure

============================================================
USAGE
============================================================
python -m orchestrator.cli catalog
python -m orchestrator.cli estimate --recording-id 1
python -m orchestrator.cli estimate --json recording.json
python -m orchestrator.cli calculate --recording-id 1 --speed 4
python -m orchestrator.cli tokenize --recording-id 2 --account ALICE --instant
python -m orchestrator.cli balance --account ALICE --adapter algod
ALGOD_SIGNER_MNEMONIC="..." python -m orchestrator.cli tokenize --recording-id 1 --account <address> --adapter algod

============================================================
"""

import argparse
import asyncio
import inspect
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from calculation_engine import CalculationSnapshot
from core.exceptions import BioTokenException, InvalidRecording, IssuanceError
from issuance_engine import IssuanceEngineConfig, ValuationService
from issuance_engine.adapters import create_adapter
from scoring_engine import Recording, ScoreFactor, compute_factors, get_recording, list_recordings

from .core import setup_logging
from .pipeline import create_pipeline


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="biotoken",
        description="Bio-token valuation and issuance for bioacoustic recordings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  catalog    - List the sample recordings and their values
  estimate   - Compute the token value of a recording
  calculate  - Replay the staged calculation factor by factor
  tokenize   - Calculate and issue a recording as a bio-token asset
  balance    - Show an account's native balance
  tokens     - List the bio-tokens held by an account

Examples:
  %(prog)s estimate --recording-id 1
  %(prog)s tokenize --recording-id 2 --account ALICE --instant
        """
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="json",
        help="Logging format (default: json)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    # --------------------------------------------------------
    # catalog
    # --------------------------------------------------------
    commands.add_parser("catalog", help="List sample recordings")

    # --------------------------------------------------------
    # estimate
    # --------------------------------------------------------
    estimate = commands.add_parser("estimate", help="Compute a token value")
    source = estimate.add_mutually_exclusive_group(required=True)
    source.add_argument("--recording-id", metavar="ID", help="Sample recording id")
    source.add_argument("--json", metavar="FILE", help="JSON file with recording attributes")

    # --------------------------------------------------------
    # calculate
    # --------------------------------------------------------
    calculate = commands.add_parser("calculate", help="Replay the staged calculation")
    calculate.add_argument("--recording-id", metavar="ID", required=True)
    _add_pacing_arguments(calculate)

    # --------------------------------------------------------
    # tokenize
    # --------------------------------------------------------
    tokenize = commands.add_parser("tokenize", help="Calculate and issue a bio-token")
    tokenize.add_argument("--recording-id", metavar="ID", required=True)
    tokenize.add_argument("--account", metavar="ADDR", required=True, help="Creator account")
    _add_adapter_argument(tokenize)
    _add_pacing_arguments(tokenize)
    tokenize.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="Bound on the mint (default: ISSUANCE_TIMEOUT_SECONDS or 30)",
    )
    tokenize.add_argument(
        "--no-ledger",
        action="store_true",
        help="Do not record the issuance in the local ledger",
    )

    # --------------------------------------------------------
    # balance / tokens
    # --------------------------------------------------------
    balance = commands.add_parser("balance", help="Show an account balance")
    balance.add_argument("--account", metavar="ADDR", required=True)
    _add_adapter_argument(balance)

    tokens = commands.add_parser("tokens", help="List bio-tokens held by an account")
    tokens.add_argument("--account", metavar="ADDR", required=True)
    _add_adapter_argument(tokens)

    return parser


def _add_pacing_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Presentation speed multiplier (default: 1.0)",
    )
    parser.add_argument(
        "--instant",
        action="store_true",
        help="Skip all presentation delays",
    )


def _add_adapter_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--adapter",
        type=str,
        choices=["mock", "algod"],
        help=(
            "Issuance service adapter (default: ISSUANCE_ADAPTER or mock); "
            "algod mints sign with ALGOD_SIGNER_MNEMONIC"
        ),
    )


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    if getattr(args, "speed", 1.0) <= 0:
        errors.append("--speed must be positive")

    timeout = getattr(args, "timeout", None)
    if timeout is not None and timeout <= 0:
        errors.append("--timeout must be positive")

    account = getattr(args, "account", None)
    if account is not None and not account.strip():
        errors.append("--account must not be empty")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> IssuanceEngineConfig:
    """Build engine configuration from environment and CLI arguments."""
    config = IssuanceEngineConfig.from_env()

    if getattr(args, "adapter", None):
        config.adapter = args.adapter

    if hasattr(args, "speed"):
        config.pacing.speed = args.speed
        config.pacing.enabled = not args.instant

    if getattr(args, "timeout", None):
        config.timeout.issuance_timeout_seconds = args.timeout

    if getattr(args, "no_ledger", False):
        config.ledger.enabled = False

    return config


# ============================================================
# OUTPUT
# ============================================================

def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _load_recording(args: argparse.Namespace) -> Recording:
    if getattr(args, "json", None):
        with open(args.json, "r", encoding="utf-8") as f:
            return Recording.from_dict(json.load(f))
    return get_recording(args.recording_id)


def _print_reveal(snapshot: CalculationSnapshot, factor: ScoreFactor) -> None:
    print(f"  ... {factor.display_name}: {factor.description}")


def _print_update(snapshot: CalculationSnapshot) -> None:
    factor_id = snapshot.completed_factor_ids[-1]
    print(f"  {len(snapshot.completed_factor_ids)}/5 {factor_id:<13s} value = {snapshot.current_value}")


# ============================================================
# COMMANDS
# ============================================================

def cmd_catalog(args: argparse.Namespace) -> int:
    service = ValuationService(create_adapter("mock"))
    print(f"{'ID':<4s} {'SPECIES':<22s} {'STATUS':<6s} {'LOCATION':<24s} {'VALUE':>5s}")
    for recording in list_recordings():
        status = recording.conservation_status.value if recording.conservation_status else "-"
        print(
            f"{recording.id:<4s} {(recording.species or 'Unknown'):<22s} {status:<6s} "
            f"{recording.location:<24s} {service.estimate_value(recording):>5d}"
        )
    return 0


def cmd_estimate(args: argparse.Namespace) -> int:
    recording = _load_recording(args)
    service = ValuationService(create_adapter("mock"))
    _print_json({
        "recording_id": recording.id,
        "token_amount": service.estimate_value(recording),
        "factors": [factor.to_dict() for factor in compute_factors(recording)],
    })
    return 0


async def cmd_calculate(args: argparse.Namespace) -> int:
    config = build_config(args)
    config.ledger.enabled = False
    pipeline = create_pipeline(config, adapter=create_adapter("mock"))
    pipeline.on_reveal(_print_reveal)
    pipeline.on_update(_print_update)

    recording = get_recording(args.recording_id)
    print(f"Calculating bio-token value of recording {recording.id} ({recording.location})")
    snapshot = await pipeline.calculate(recording)
    print(f"Final value: {max(1, snapshot.current_value)} bio-tokens")
    return 0


async def cmd_tokenize(args: argparse.Namespace) -> int:
    config = build_config(args)
    pipeline = create_pipeline(config)
    pipeline.on_reveal(_print_reveal)
    pipeline.on_update(_print_update)
    pipeline.on_phase(lambda s: print(f"  phase: {s.phase.value}"))

    try:
        outcome = await pipeline.tokenize(
            get_recording(args.recording_id),
            args.account,
            timeout=config.timeout.issuance_timeout_seconds,
        )
    finally:
        await pipeline.close()

    _print_json(outcome.to_dict())
    return 0 if outcome.success else 1


async def cmd_balance(args: argparse.Namespace) -> int:
    config = build_config(args)
    service = ValuationService(create_adapter(config.adapter, config=config), config=config)
    try:
        balance = await service.get_account_balance(args.account)
    finally:
        await service.close()

    _print_json({"account": args.account, "balance": balance})
    return 0


async def cmd_tokens(args: argparse.Namespace) -> int:
    config = build_config(args)
    service = ValuationService(create_adapter(config.adapter, config=config), config=config)
    try:
        holdings = await service.list_bio_tokens(args.account)
    finally:
        await service.close()

    _print_json({"account": args.account, "tokens": [h.to_dict() for h in holdings]})
    return 0


COMMANDS = {
    "catalog": cmd_catalog,
    "estimate": cmd_estimate,
    "calculate": cmd_calculate,
    "tokenize": cmd_tokenize,
    "balance": cmd_balance,
    "tokens": cmd_tokens,
}


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def run_command(args: argparse.Namespace) -> int:
    """
    Run the selected command.

    Returns:
        Exit code
    """
    handler = COMMANDS[args.command]

    try:
        if inspect.iscoroutinefunction(handler):
            return asyncio.run(handler(args))
        return handler(args)
    except InvalidRecording as e:
        print(f"Error: invalid recording: {e.message}", file=sys.stderr)
        return 1
    except IssuanceError as e:
        print(f"Error: {e.reason}", file=sys.stderr)
        return 1
    except BioTokenException as e:
        logger.error(e.to_log_format())
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(args.log_level, args.log_format)
    return run_command(args)


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
