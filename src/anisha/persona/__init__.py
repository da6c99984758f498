"""ANISHA persona prompts and canned replies."""
