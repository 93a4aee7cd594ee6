"""Game orchestration on the host."""
