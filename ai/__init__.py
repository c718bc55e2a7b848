"""AI module: provider adapters and conversation assembly."""
