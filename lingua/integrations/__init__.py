"""
External service clients.
"""

from .gemini_client import GeminiClient, GeminiError, GeminiRequest, parse_json_reply

__all__ = ["GeminiClient", "GeminiError", "GeminiRequest", "parse_json_reply"]
