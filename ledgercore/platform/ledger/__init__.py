from ledgercore.platform.ledger.accounts import AccountRegistry, account_registry
from ledgercore.platform.ledger.api import router
from ledgercore.platform.ledger.gateway import LedgerGateway, ledger_gateway
from ledgercore.platform.ledger.journal import JournalEngine, journal_engine
from ledgercore.platform.ledger.models import Account, FinancialPeriod, JournalEntry, JournalEntryLine, LedgerSequence
from ledgercore.platform.ledger.periods import PeriodManager, period_manager
from ledgercore.platform.ledger.schemas import (
    AccountCreate,
    AccountRead,
    AccountUpdate,
    FinancialPeriodCreate,
    FinancialPeriodRead,
    JournalEntryCreate,
    JournalEntryPage,
    JournalEntryRead,
    JournalEntryReverseRequest,
    JournalLineInput,
    JournalLineRead,
)
from ledgercore.platform.ledger.seed import seed_chart_of_accounts

__all__ = [
    "router",
    "Account",
    "FinancialPeriod",
    "JournalEntry",
    "JournalEntryLine",
    "LedgerSequence",
    "AccountCreate",
    "AccountRead",
    "AccountUpdate",
    "FinancialPeriodCreate",
    "FinancialPeriodRead",
    "JournalEntryCreate",
    "JournalEntryPage",
    "JournalEntryRead",
    "JournalEntryReverseRequest",
    "JournalLineInput",
    "JournalLineRead",
    "AccountRegistry",
    "account_registry",
    "JournalEngine",
    "journal_engine",
    "LedgerGateway",
    "ledger_gateway",
    "PeriodManager",
    "period_manager",
    "seed_chart_of_accounts",
]
