#!/usr/bin/env python3
"""
Example: Account lifecycle walkthrough

Opens a checking and a savings account, moves money between them, runs
into the overdraft fee, pays interest and reloads everything from SQLite.
"""

import os
import sys
import tempfile
from pathlib import Path

# Add the account core module to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from account_core.config import AccountCoreConfig
from account_core.errors import AccountError
from account_core.logging_config import setup_logging
from account_core.registry import AccountRegistry
from account_core.storage import SQLiteStorage
from account_core.transactions import TransactionKind


def main():
    print("🏦 Account Core - Walkthrough")
    print("=" * 60)

    config = AccountCoreConfig()
    setup_logging("WARNING", fmt="text")

    db_path = Path(tempfile.mkdtemp()) / "walkthrough.db"
    storage = SQLiteStorage(db_path)
    registry = AccountRegistry(storage=storage, config=config)

    # 1. Open accounts
    print("\n1. 📂 Opening accounts")
    checking = registry.open_checking_account("Alice")
    savings = registry.open_savings_account("Alice", interest_rate="0.05")
    print(f"   Checking: {checking.id}")
    print(f"   Savings:  {savings.id}")

    # 2. Deposits, and a withdrawal into overdraft
    print("\n2. 💵 Deposits and overdraft")
    registry.deposit(checking.id, "50.00")
    records = registry.withdraw(checking.id, "100.00")
    for record in records:
        print(f"   {record.to_line()}")
    print(f"   Checking balance: {checking.balance.to_string()}")

    # 3. A savings withdrawal that is rejected
    print("\n3. ⛔ Savings floor")
    try:
        registry.withdraw(savings.id, "10.00")
    except AccountError as e:
        print(f"   Rejected: {e}")

    # 4. Transfer
    print("\n4. 🔁 Transfer")
    registry.deposit(checking.id, "2085.00")
    result = registry.transfer(checking.id, savings.id, "1000.00")
    print(f"   Moved {result.amount.to_string()}")
    print(f"   Checking: {checking.balance.to_string()}, Savings: {savings.balance.to_string()}")

    # 5. Interest
    print("\n5. 📈 Interest batch")
    batch = registry.pay_global_interest()
    print(f"   Applied: {batch.to_dict()['applied']}")

    # 6. Statement and filtered transactions
    print("\n6. 🧾 Statements")
    for line in registry.statement(savings.id):
        print(f"   {line}")
    fees = registry.get_transactions_by_kind(checking.id, TransactionKind.FEE)
    print(f"   Overdraft fees paid on checking: {len(fees)}")

    # 7. Freeze
    print("\n7. 🧊 Freeze")
    registry.freeze_account(checking.id, "suspicious activity")
    try:
        registry.deposit(checking.id, "10.00")
    except AccountError as e:
        print(f"   Rejected: {e}")
    registry.unfreeze_account(checking.id, "cleared")

    # 8. Reload from storage
    print("\n8. 💾 Reload")
    reloaded = AccountRegistry(storage=storage, config=config)
    count = reloaded.load()
    print(f"   Loaded {count} accounts")
    print(f"   Savings balance after reload: {reloaded.get_account(savings.id).balance.to_string()}")
    print(f"   Audit trail valid: {reloaded.audit_trail.verify_integrity()['valid']}")

    storage.close()
    print("\n✅ Walkthrough complete")


if __name__ == "__main__":
    main()
