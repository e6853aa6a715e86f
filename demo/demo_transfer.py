"""
CONTOSO FINANCE PORTAL -- Transfer Demo

Walks through the CFO approval workflow using the Python client:

  1. List company entities
  2. Record a LOW-value transfer (auto-approved, no verification)
  3. Try a HIGH-value transfer without verification (403)
  4. Record a HIGH-value transfer approved via local simulation
  5. Show the ledger

Run with:
    python demo/demo_transfer.py [base_url]

Requires the portal to be running (uvicorn portal.main:app) in local
mode, i.e. without a public BASE_URL, so simulation is available.
"""

import sys

from portal_sdk.client import (
    PollUpdate,
    PortalClient,
    PortalError,
    VerificationFailed,
    VerificationTimeout,
    transaction_summary,
)

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

# ---------------------------------------------------------------------------
# ANSI color codes
# ---------------------------------------------------------------------------

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"

CYAN = "\033[36m"
GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
WHITE = "\033[97m"


def header(text: str) -> None:
    width = 64
    print()
    print(f"{CYAN}{BOLD}{'=' * width}{RESET}")
    print(f"{CYAN}{BOLD}  {text}{RESET}")
    print(f"{CYAN}{BOLD}{'=' * width}{RESET}")
    print()


def step(number: int, title: str) -> None:
    print(f"{WHITE}{BOLD}[Step {number}]{RESET} {YELLOW}{title}{RESET}")
    print(f"{DIM}{'-' * 56}{RESET}")


def show_update(update: PollUpdate) -> None:
    color = GREEN if update.status == "presentation_verified" else DIM
    print(f"  {color}{update.message}{RESET}")


LOW_VALUE = {
    "from_entity": "CONTOSO-MKT",
    "to_entity": "CONTOSO-SALES",
    "amount": 12500,
    "description": "Trade show booth",
    "category": "Marketing",
}

HIGH_VALUE = {
    "from_entity": "CONTOSO-HQ",
    "to_entity": "FABRIKAM-US",
    "amount": 250000,
    "description": "Q3 vendor settlement",
    "category": "Operations",
}


def main() -> None:
    portal = PortalClient(BASE_URL)

    header("CONTOSO FINANCE PORTAL -- CFO APPROVAL DEMO")
    print(f"  {DIM}API: {BASE_URL}{RESET}")

    step(1, "Company entities")
    try:
        entities = portal.entities()
    except PortalError as e:
        print(f"  {RED}Portal not reachable: {e}{RESET}")
        sys.exit(1)
    for entity in entities:
        print(f"  {entity['id']:16s} {entity['name']:40s} {DIM}${entity['used_budget']:,.0f} / ${entity['budget']:,.0f}{RESET}")
    print()

    step(2, "Low-value transfer ($12,500)")
    txn = portal.transfer(LOW_VALUE)
    print(f"  {GREEN}{txn['status']}{RESET} -- approver: {txn['approver']}")
    print()

    step(3, "High-value transfer without verification")
    try:
        portal.submit_transaction(HIGH_VALUE)
    except PortalError as e:
        print(f"  {RED}Rejected ({e.status_code}){RESET}: {e.body}")
    print()

    step(4, "High-value transfer with CFO approval (simulated)")
    try:
        txn = portal.transfer(HIGH_VALUE, simulate=True, on_update=show_update, interval=1.0)
    except VerificationFailed as e:
        print(f"{RED}{e.report}{RESET}")
        sys.exit(1)
    except VerificationTimeout as e:
        print(f"  {RED}{e}{RESET}")
        sys.exit(1)
    print()
    print(transaction_summary(txn))
    print()

    step(5, "Ledger")
    for t in portal.transactions():
        print(
            f"  {t['timestamp'][:19]}  ${t['amount']:>12,.2f}  {t['from_entity']['id']} -> "
            f"{t['to_entity']['id']}  {DIM}{t['status']} by {t['approver']}{RESET}"
        )
    print()
    print(f"  {DIM}Interactive docs: {WHITE}{BASE_URL}/docs{RESET}")
    print()


if __name__ == "__main__":
    main()
