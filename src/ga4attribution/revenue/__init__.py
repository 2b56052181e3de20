from .analytics import RevenueAnalytics, RevenueOverview
from .card import CardLedger
from .fx import Conversion, CurrencyConverter, FxRateClient
from .ledger import LedgerAdapter
from .types import ChargeSummary, LedgerBatch, LedgerCharge, TopCustomersSummary
from .wallet import WalletLedger

__all__ = [
    "CardLedger",
    "ChargeSummary",
    "Conversion",
    "CurrencyConverter",
    "FxRateClient",
    "LedgerAdapter",
    "LedgerBatch",
    "LedgerCharge",
    "RevenueAnalytics",
    "RevenueOverview",
    "TopCustomersSummary",
    "WalletLedger",
]
