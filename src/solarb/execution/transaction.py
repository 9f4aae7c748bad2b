"""
Transaction assembly and pre-send safety checks.

Transactions are legacy solders Transactions built from a list of
instructions, the custodial fee payer and the freshest blockhash.
"""

import logging
from collections.abc import Sequence

from solders.hash import Hash, ParseHashError
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from solarb.core.errors import SafetyCheckError


logger = logging.getLogger(__name__)


class TransactionBuilder:
    """Builds unsigned transactions and validates them before sending."""

    def build(
        self,
        instructions: Sequence[Instruction],
        fee_payer: Pubkey,
        blockhash: str,
    ) -> Transaction:
        """
        Assemble an unsigned transaction.

        Args:
            instructions: Instructions in execution order.
            fee_payer: Account paying fees; becomes the first account key.
            blockhash: Recent blockhash (base58).

        Returns:
            Unsigned Transaction.

        Raises:
            SafetyCheckError: If the blockhash is malformed.
        """
        try:
            recent_blockhash = Hash.from_string(blockhash)
        except (ParseHashError, ValueError) as e:
            raise SafetyCheckError(f"Malformed blockhash: {blockhash!r}") from e

        message = Message.new_with_blockhash(list(instructions), fee_payer, recent_blockhash)
        return Transaction.new_unsigned(message)

    def build_transfer(
        self,
        source: Pubkey,
        destination: Pubkey,
        lamports: int,
        blockhash: str,
    ) -> Transaction:
        """Build an unsigned system-program SOL transfer."""
        if lamports <= 0:
            raise SafetyCheckError(f"Transfer amount must be positive, got {lamports}")

        instruction = transfer(
            TransferParams(from_pubkey=source, to_pubkey=destination, lamports=lamports)
        )
        return self.build([instruction], source, blockhash)

    @staticmethod
    def safety_check(transaction: Transaction) -> None:
        """
        Reject transactions that must never leave the process.

        Raises:
            SafetyCheckError: If the message has no instructions, no fee
                payer, or a default (all-zero) fee payer.
        """
        message = transaction.message

        if not message.instructions:
            raise SafetyCheckError("Transaction has no instructions")

        if not message.account_keys:
            raise SafetyCheckError("Transaction has no fee payer")

        fee_payer = message.account_keys[0]
        if fee_payer == Pubkey.default():
            raise SafetyCheckError("Fee payer is the default public key")

        if message.header.num_required_signatures < 1:
            raise SafetyCheckError("Fee payer is not a required signer")
