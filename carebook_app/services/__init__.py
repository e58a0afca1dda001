"""Scheduling services: calendar rules, time-off, ledger, resolver and admission."""
