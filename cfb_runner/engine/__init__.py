"""Execution engine: process supervision and per-scenario execution."""
