"""CodeMobile: a multi-provider coding assistant with an agentic tool loop."""

__version__ = "0.1.0"
