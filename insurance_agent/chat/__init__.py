"""Tool-using chat.

A bounded, step-by-step runtime: the model streams an answer and may call the
read-only insurance tools; results re-enter the conversation until the model
answers in plain text or the step budget is spent.
"""
