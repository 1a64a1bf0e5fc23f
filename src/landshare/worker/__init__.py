"""Background job entry points."""
