"""Pooled-wager horse race ledger program and its host."""
