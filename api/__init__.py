"""HTTP interface for Migratr."""
