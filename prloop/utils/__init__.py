"""Utility helpers for logging and shell execution."""
