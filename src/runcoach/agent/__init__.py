"""
agent - LLM-driven agents: the execution harness, prompt builders, the
tool protocol adapter and the tools themselves.

Agents never call each other. They read the context they are given and
share findings through the whiteboard.
"""
