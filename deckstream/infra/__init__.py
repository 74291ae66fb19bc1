"""
Infrastructure layer - configuration, LLM transport and storage adapters.
"""
