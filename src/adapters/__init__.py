"""Adapters connecting the core to Flask, the webhook wire format and logging."""
