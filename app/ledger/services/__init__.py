"""
Ledger services wired together.

Each component receives its collaborators explicitly. The module-level
instances below are the default wiring used by the donations app and
the management command; tests may build their own.

Usage:
    from ledger.services import auditor, balances, chart, recorder

    chart.ensure_system_accounts()
    txn = recorder.record_donation_received(donation, actor="staff:7")
    balances.get_charity_available_funds(donation.charity_id)
    auditor.verify_trial_balance()
"""

from .accounts import ChartOfAccounts, SystemAccountCode
from .auditor import TrialBalanceAuditor
from .balances import BalanceCalculator
from .recorder import ReferenceType, TransactionRecorder

chart = ChartOfAccounts()
balances = BalanceCalculator(chart=chart)
recorder = TransactionRecorder(chart=chart, balances=balances)
auditor = TrialBalanceAuditor(balances=balances)

__all__ = [
    "BalanceCalculator",
    "ChartOfAccounts",
    "ReferenceType",
    "SystemAccountCode",
    "TransactionRecorder",
    "TrialBalanceAuditor",
    "auditor",
    "balances",
    "chart",
    "recorder",
]
