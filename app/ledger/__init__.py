"""
Ledger - Double-entry bookkeeping for donated housing funds.

Tracks money from donation receipt through fee deduction, charity-scoped
holding, allocation to situations and disbursement for bookings. Every
transaction balances, and total debits always equal total credits.

Public API (import from the submodules; this package stays import-light
so Django can load it before the app registry is ready):
    Models (ledger.models):
        Account - One account in the chart, with a cached balance
        LedgerTransaction - Balanced group of entries for one event
        LedgerEntry - One debit or credit against one account
        AccountType, EntryType, TransactionType - Choice enums

    Services (ledger.services):
        chart - ChartOfAccounts (system and charity fund accounts)
        balances - BalanceCalculator (replayed balances, history)
        recorder - TransactionRecorder (posts transactions)
        auditor - TrialBalanceAuditor (system-wide checks)

    Types (ledger.types):
        EntryLine, BookingRef, TrialBalance, BalanceDrift

    Exceptions (ledger.exceptions):
        LedgerError, UnbalancedTransactionError, SystemAccountMissing, ...

Usage:
    from ledger.services import auditor, chart, recorder

    chart.ensure_system_accounts()
    txn = recorder.record_donation_received(donation, actor="staff:7")
    assert auditor.verify_trial_balance()
"""
