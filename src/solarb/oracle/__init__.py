"""Venue price oracle."""

from solarb.oracle.oracle import PriceOracle
from solarb.oracle.sources import HttpPriceSource, PumpFunPriceSource, RaydiumPriceSource


__all__ = [
    "HttpPriceSource",
    "PriceOracle",
    "PumpFunPriceSource",
    "RaydiumPriceSource",
]
