"""
infrastructure.llm - LangChain-backed LLM access: provider builder,
tool-calling conversation service, single-shot client and the router.
"""
