"""Runtime configuration for Migratr."""
