"""
Command-line entry point: check that servers are up and returning HTTP 200.

The last argument is a reference server used to decide whether the network
itself is available, for example:

    isserverup server1.com server2.com reference_server.com
"""

import argparse
import sys
from typing import List, Optional

from isserverup.config import validate_config, get_config_summary
from isserverup.checker import build_target, build_targets, exit_code_for, report_outcome, run_checks
from isserverup.utils import logger, setup_logging, write_diagnostic, ValidationError


USAGE_TEXT = (
    "Usage: isserverup [-k] [--strict-exit-codes] [-v] server1 [server2 server3 serverX...] ref_server\n"
    "\n"
    "Example: isserverup domain1.com domain2.com www.google.co.uk\n"
    "\n"
    "In the above example, google.co.uk will be checked to determine if there is a network connection.\n"
    "If there is, domain1.com and domain2.com will be checked to see if they return a 200.\n"
)

MIN_SERVER_ARGS = 2


class UsageArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports bad invocations with the usage text and exit code 1."""

    def error(self, message):
        write_diagnostic(f"{self.prog}: {message}")
        print_usage_error("Invalid arguments.")
        sys.exit(1)


def print_usage_error(reason: str = "Incorrect number of parameters.") -> None:
    print(f"{reason}\n")
    print(USAGE_TEXT)


def build_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(
        prog="isserverup",
        description="Test servers are up and returning HTTP 200 response codes.",
        epilog=USAGE_TEXT,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "servers",
        nargs="*",
        metavar="server",
        help="Servers to check; the last one is the reference server",
    )
    parser.add_argument(
        "-k", "--insecure",
        action="store_true",
        help="Skip TLS certificate verification",
    )
    parser.add_argument(
        "--strict-exit-codes",
        action="store_true",
        help="Exit 4 if the reference is unreachable, else 1 for non-200 | 2 for transport errors",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    is_valid, errors = validate_config()
    if not is_valid:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return 1

    # Options may appear between server arguments
    args = build_parser().parse_intermixed_args(argv)

    setup_logging(level="DEBUG" if args.verbose else None)

    for key, value in get_config_summary().items():
        logger.debug(f"  {key}: {value}")

    if len(args.servers) < MIN_SERVER_ARGS:
        print_usage_error()
        return 1

    try:
        targets = build_targets(args.servers[:-1])
        reference = build_target(len(args.servers), args.servers[-1])
    except ValidationError as e:
        logger.warning(f"Bad invocation: {e!s}")
        print_usage_error("Invalid server argument.")
        return 1

    logger.debug(f"Reference server: {reference.url}; {len(targets)} target(s)")

    summary = run_checks(targets, reference, verify_tls=not args.insecure)
    report_outcome(summary)

    return exit_code_for(summary, strict=args.strict_exit_codes)


if __name__ == "__main__":
    sys.exit(main())
