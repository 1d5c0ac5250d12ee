# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Run one queue batch locally from a JSON event file."""

import argparse
import json
import sys
from pathlib import Path

from .config import Settings


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Issue device attestation certificates for a queued batch',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay a captured queue event
  python -m dac_issuer event.json

  # Longer validity, no post-issuance verification
  dacValidityInDays=365 python -m dac_issuer event.json --no-verify
        """
    )

    parser.add_argument(
        'event',
        type=Path,
        help='Path to a JSON queue event ({"Records": [...]})'
    )

    parser.add_argument(
        '--region',
        help='AWS region of the bucket and private CA (default: from environment)'
    )

    parser.add_argument(
        '--no-verify',
        action='store_true',
        help='Skip verification of issued certificates'
    )

    args = parser.parse_args(argv)

    # Import late so that logging is configured only when actually running
    from .handler import create_issuer, handle_batch

    overrides = {}
    if args.region:
        overrides['aws_region'] = args.region
    if args.no_verify:
        overrides['verify_issued_certificates'] = False
    config = Settings(**overrides)

    try:
        with open(args.event, 'r') as f:
            event = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"✗ Couldn't read event {args.event}: {e}", file=sys.stderr)
        return 2

    response = handle_batch(event, None, create_issuer(config))
    print(json.dumps(response, indent=2))
    return 1 if response["batchItemFailures"] else 0
