"""Test suite for the clinic ledger backend."""
