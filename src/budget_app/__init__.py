"""Household budget service: bank statement reconciliation."""
