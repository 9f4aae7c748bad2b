"""Execution module for signing, submission and risk control."""

from solarb.execution.chain import SolanaRpcClient
from solarb.execution.executor import ExecutorConfig, TradeExecutor
from solarb.execution.instructions import InstructionBuilder, JupiterInstructionBuilder
from solarb.execution.recovery import ReconciliationResult, TradeReconciler
from solarb.execution.risk import RiskCheckResult, RiskManager
from solarb.execution.signer import KeyStore, decode_secret_key
from solarb.execution.transaction import TransactionBuilder


__all__ = [
    "ExecutorConfig",
    "InstructionBuilder",
    "JupiterInstructionBuilder",
    "KeyStore",
    "ReconciliationResult",
    "RiskCheckResult",
    "RiskManager",
    "SolanaRpcClient",
    "TradeExecutor",
    "TradeReconciler",
    "TransactionBuilder",
    "decode_secret_key",
]
