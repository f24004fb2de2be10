"""Lean workforce matching backend."""
