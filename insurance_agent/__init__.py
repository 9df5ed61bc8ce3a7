"""BH Assurance conversational assistant.

A streamed, tool-using chat service: the model answers client questions and
calls a small set of read-only insurance tools (products, policies, coverage,
payments, claims, quotes).
"""
