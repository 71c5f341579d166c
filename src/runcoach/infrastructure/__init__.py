"""
infrastructure - Concrete implementations of domain ports.

Contains all vendor-specific code: LangChain providers, SQLite, the
fitness-tracker bridge, configuration and logging.
"""
