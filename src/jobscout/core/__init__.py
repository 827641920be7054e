"""Core infrastructure: config-independent building blocks shared by services."""
