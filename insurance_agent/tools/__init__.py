"""Read-only insurance tools exposed to the chat model."""
