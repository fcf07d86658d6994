"""Command-line interface for the storefront data-access layer."""
