"""
runcoach - Orchestration core of the running and health coaching assistant.

Routes requests to agents, drives bounded tool-calling conversations,
shares findings through the whiteboard and composes it all into the
morning, chat, post-run and weekly review pipelines.
"""

__version__ = "0.4.0"
