#!/usr/bin/env python3
"""
Command line tool for S3 administration.

Usage:
    s3 new-resolver -s LOGIC -a KEY -n NONCE [-g GWEI | --gas-report FILE]
                    [--step GWEI | --ratio R] [-c CHAIN_ID] [-o FILE]
    s3 publish-new-resolver [-c CONFIG] [-t TRANSCRIPT]
    s3 audit-administration [-c CONFIG] [-s SPEC] [-t REPORT]
    s3 audit-token [-c CONFIG] -d DECLARATION
    s3 admin [-c CONFIG]

Results go to stdout, diagnostics to stderr. Any existing output file makes
the command exit with status 1 before doing anything.
"""

import argparse
import base64
import json
import logging
import sys
from decimal import Decimal

from . import __version__
from .admin import AdminSession, Interpreter
from .admin.console import run_console
from .audit import audit_administration, audit_token
from .chain import RpcChain, normalize_address
from .config import (
    DEFAULT_ADMIN_SPEC, DEFAULT_CONFIG, DEFAULT_NEW_RESOLVER, DEFAULT_REPORT,
    load_admin_spec, load_config, load_document, load_token_deployment, read_safe_low_gwei,
)
from .errors import S3Error, ValidationError
from .transactions import (
    Publisher, check_output, geometric_ladder, linear_ladder, new_resolver,
    parse_private_key, read_transcript, write_transcript,
)
from .transactions.gas_ladder import DEFAULT_STEP_GWEI, signer_address

log = logging.getLogger("s3admin")

DEFAULT_GAS_PRICE_GWEI = Decimal(5)
DEFAULT_CHAIN_ID = 4


def connect(config) -> RpcChain:
    """Chain capability for a loaded configuration."""
    return RpcChain(
        config.net.url,
        controller=config.controller,
        submit_gas=config.submit_gas,
        poll_interval=config.publish.poll_interval,
    )


# =============================================================================
# Commands
# =============================================================================

def cmd_new_resolver(args) -> int:
    """Author a setResolver ladder offline and write its transcript."""
    check_output(args.output)

    admin_key = parse_private_key(args.admin, field="--admin")
    log.info("signing as %s", signer_address(admin_key))
    if args.gas_report:
        base = read_safe_low_gwei(args.gas_report)
    else:
        base = args.gas_price
    if args.ratio is not None:
        prices = geometric_ladder(base, args.ratio)
    else:
        prices = linear_ladder(base, args.step)

    result = new_resolver(
        normalize_address(args.simplified_token_logic, "--simplifiedTokenLogic"),
        admin_key,
        prices,
        nonce=args.nonce,
        chain_id=args.chain_id,
    )

    print("New resolver address:", result.resolver_address)
    print("New resolver key:", base64.b64encode(result.resolver_key).decode())
    print("New resolver key (hex):", "0x" + result.resolver_key.hex())

    write_transcript(result.transcript, args.output)
    return 0


def cmd_publish_new_resolver(args) -> int:
    """Publish a transcript; exits 1 if the mined call reverted."""
    config = load_config(args.config)
    entry = read_transcript(args.transcript)
    publisher = Publisher(
        connect(config),
        attempt_timeout=config.publish.attempt_timeout,
        overall_timeout=config.publish.overall_timeout,
    )

    receipt = publisher.publish(entry)
    print(json.dumps(receipt.to_dict(), indent=2))
    if not receipt.succeeded:
        log.error("transaction %s was mined but reverted", receipt.tx_hash)
        return 1
    log.info("done")
    return 0


def cmd_audit_administration(args) -> int:
    """Audit the administration contract named in a deployment report."""
    config = load_config(args.config)
    spec = load_admin_spec(args.spec)
    report = load_document(args.transcript)
    if not isinstance(report, dict) or "adminAddress" not in report:
        raise ValidationError("missing adminAddress", field=str(args.transcript))
    admin_address = normalize_address(report["adminAddress"], "adminAddress")

    audit = audit_administration(connect(config), admin_address, spec)
    print(audit)
    return 0 if audit.passed else 1


def cmd_audit_token(args) -> int:
    """Audit a token deployment against its declaration."""
    config = load_config(args.config)
    deployment = load_token_deployment(args.declaration)

    log.info("Auditing %s", deployment.name)
    audit = audit_token(connect(config), deployment)
    print(audit)
    return 0 if audit.passed else 1


def cmd_admin(args) -> int:
    """Run the interactive console."""
    config = load_config(args.config)
    session = AdminSession(Interpreter(connect(config)))
    run_console(session)
    return 0


# =============================================================================
# Argument parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Argument parser for every subcommand."""
    parser = argparse.ArgumentParser(prog="s3", description="S3 administration tool")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    p = commands.add_parser("new-resolver",
                            help="Author a gas ladder installing a fresh resolver")
    p.add_argument("-s", "--simplifiedTokenLogic", dest="simplified_token_logic", required=True,
                   help="Address of the simplified token logic to change")
    p.add_argument("-a", "--admin", required=True,
                   help="Private key (hex or base64) in control of the token logic")
    price = p.add_mutually_exclusive_group()
    price.add_argument("-g", "--gasPrice", dest="gas_price", type=Decimal,
                       default=DEFAULT_GAS_PRICE_GWEI, help="Starting gas price in gwei")
    price.add_argument("--gas-report", help="Take the starting price from a report's safeLow")
    growth = p.add_mutually_exclusive_group()
    growth.add_argument("--step", type=Decimal, default=Decimal(DEFAULT_STEP_GWEI),
                        help="Linear ladder step in gwei")
    growth.add_argument("--ratio", type=Decimal, help="Geometric ladder ratio per rung")
    p.add_argument("-c", "--chainId", dest="chain_id", type=int, default=DEFAULT_CHAIN_ID,
                   help="Which chain to sign for")
    p.add_argument("-n", "--nonce", type=int, required=True, help="The admin account's current nonce")
    p.add_argument("-o", "--outputFile", dest="output", default=DEFAULT_NEW_RESOLVER,
                   help="Where to write the transcript")
    p.set_defaults(func=cmd_new_resolver)

    p = commands.add_parser("publish-new-resolver", help="Publish an authored transcript")
    p.add_argument("-c", "--config", default=DEFAULT_CONFIG, help="Configuration file")
    p.add_argument("-t", "--transcript", default=DEFAULT_NEW_RESOLVER, help="Transcript file")
    p.set_defaults(func=cmd_publish_new_resolver)

    p = commands.add_parser("audit-administration",
                            help="Check an Administration contract against its spec")
    p.add_argument("-c", "--config", default=DEFAULT_CONFIG, help="Configuration file")
    p.add_argument("-s", "--spec", default=DEFAULT_ADMIN_SPEC, help="Administration spec file")
    p.add_argument("-t", "--transcript", default=DEFAULT_REPORT,
                   help="Deployment report holding adminAddress")
    p.set_defaults(func=cmd_audit_administration)

    p = commands.add_parser("audit-token", help="Check a token deployment against its declaration")
    p.add_argument("-c", "--config", default=DEFAULT_CONFIG, help="Configuration file")
    p.add_argument("-d", "--declaration", required=True, help="Token declaration file")
    p.set_defaults(func=cmd_audit_token)

    p = commands.add_parser("admin", help="Interactive administration console")
    p.add_argument("-c", "--config", default=DEFAULT_CONFIG, help="Configuration file")
    p.set_defaults(func=cmd_admin)

    return parser


def main(argv=None) -> int:
    """Entry point; engine errors are logged and exit 1."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except S3Error as exc:
        log.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
