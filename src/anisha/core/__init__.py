"""Session core: language tagging, turns, memory, errors and the orchestrator."""
