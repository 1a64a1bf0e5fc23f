"""Command-line entry points for landshare operators."""
