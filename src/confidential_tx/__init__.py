"""
confidential-tx: build signed confidential transactions.

Usage:
    from confidential_tx import TransactionBuilder, Amount, BlockVersion
    from confidential_tx.memo import RTHMemoBuilder
    from confidential_tx.fog import MockFogResolver
"""

from confidential_tx.account_keys import AccountKey, PublicAddress, ReservedDestination, burn_address
from confidential_tx.block_version import BlockVersion
from confidential_tx.core.amount import Amount, MaskedAmount, UnmaskedAmount
from confidential_tx.core.builder import TransactionBuilder
from confidential_tx.core.input_credentials import InputCredentials
from confidential_tx.core.tx import Tx, TxIn, TxOut, TxPrefix

__version__ = "0.1.0"
__all__ = [
    "AccountKey",
    "Amount",
    "BlockVersion",
    "InputCredentials",
    "MaskedAmount",
    "PublicAddress",
    "ReservedDestination",
    "TransactionBuilder",
    "Tx",
    "TxIn",
    "TxOut",
    "TxPrefix",
    "UnmaskedAmount",
    "burn_address",
]
