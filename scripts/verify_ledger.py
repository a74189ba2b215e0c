#!/usr/bin/env python3
"""
Ledger Verification Script

Replays every active account's transaction log from zero and compares the
result with the stored used_amount. Optionally prints the portfolio summary
and the current risk alerts.

Usage:
    python verify_ledger.py
    python verify_ledger.py --client-id 123e4567-e89b-12d3-a456-426614174002
    python verify_ledger.py --alerts
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.dependencies import build_services
from config import AppConfig
from domain.analytics import build_alerts, summarize_portfolio
from domain.errors import CreditLedgerError
from domain.time import utc_now
from services.ledger_service import LedgerService, LedgerVerification


def verify_accounts(ledger: LedgerService, client_ids: List[UUID]) -> List[LedgerVerification]:
    """Verify each client's ledger, printing one line per account."""

    results = []
    for client_id in client_ids:
        result = ledger.verify(client_id)
        results.append(result)
        marker = "✓" if result.consistent else "✗"
        print(
            f"{marker} {client_id}: stored {result.stored_used_amount}, "
            f"replayed {result.replayed_used_amount} ({result.entries} entries)"
        )
        for entry_id in result.chain_breaks:
            print(f"    chain break at entry {entry_id}")
    return results


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Verify credit ledgers against stored balances",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Verify every active account
  python verify_ledger.py

  # Verify a single client
  python verify_ledger.py --client-id 123e4567-e89b-12d3-a456-426614174002

  # Also print the portfolio summary and risk alerts
  python verify_ledger.py --alerts
        """
    )

    parser.add_argument(
        "--client-id",
        type=UUID,
        help="Only verify this client's account"
    )

    parser.add_argument(
        "--alerts",
        action="store_true",
        help="Print portfolio summary and risk alerts"
    )

    args = parser.parse_args()

    try:
        services = build_services(AppConfig.from_env())
        limits = services.ledger.limits.list_active()
        client_ids = [args.client_id] if args.client_id else [lim.client_id for lim in limits]

        print("=" * 60)
        print("LEDGER VERIFICATION")
        print("=" * 60)
        results = verify_accounts(services.ledger, client_ids)
        broken = [r for r in results if not r.consistent]
        print("-" * 60)
        print(f"Accounts verified:  {len(results)}")
        print(f"Inconsistent:       {len(broken)}")

        if args.alerts:
            summary = summarize_portfolio(limits)
            print()
            print("PORTFOLIO")
            print("-" * 60)
            print(f"Active limits:        {summary.active_limits}")
            print(f"Total credit:         {summary.total_credit}")
            print(f"Total used:           {summary.total_used}")
            print(f"Average utilization:  {summary.average_utilization}%")

            alerts = build_alerts(limits, services.settings.current, utc_now())
            print()
            print(f"ALERTS ({len(alerts)})")
            print("-" * 60)
            for alert in alerts:
                print(f"[{alert.severity.value.upper()}] {alert.client_id} {alert.type.value}: {alert.message}")

        print("=" * 60)
        return 2 if broken else 0

    except KeyboardInterrupt:
        print("\n\nVerification interrupted by user")
        return 130

    except CreditLedgerError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
