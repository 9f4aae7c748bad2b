"""
Solana DEX Arbitrage Service.

An asynchronous backend that watches Raydium and Pump.fun for price gaps on
whitelisted tokens and executes profitable trades through a custodial key,
controlled over a small authenticated HTTP surface.
"""

__version__ = "1.0.0"
__author__ = "Tim"
