"""LLM providers and routing."""
