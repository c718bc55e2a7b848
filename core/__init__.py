"""Core services: configuration, logging, errors, session store, monitoring."""
