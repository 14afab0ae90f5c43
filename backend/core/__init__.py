"""Core shared logic: candles, indicators, signals and models.

This package contains pure business logic with no I/O dependencies
(no database, network or file access). The backtesting package builds on
it; callers supply candle data and consume the outputs.
"""
