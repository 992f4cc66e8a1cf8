"""Command-line interface and console output for cfb-bench."""
