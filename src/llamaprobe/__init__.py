"""Find Ollama servers in a host list, enumerate their models, and benchmark them."""

__version__ = "0.1.0"
