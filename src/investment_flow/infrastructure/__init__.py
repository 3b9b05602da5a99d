"""Infrastructure: persistence for the audit log and the shared chain runtime."""
