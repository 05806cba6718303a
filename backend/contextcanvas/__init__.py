"""Context Canvas: a model draws on an HTML canvas through tool calls and sees the result."""

__version__ = "0.1.0"
