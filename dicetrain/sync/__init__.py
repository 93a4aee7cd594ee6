"""Host-authoritative game synchronization."""
