"""Claims review service: claim store, estimate reconciliation, and review workflow."""
