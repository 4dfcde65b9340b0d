"""Banking AI gateway: rate-limited, instrumented access to LLM-backed banking analyses."""

__version__ = "1.0.0"
