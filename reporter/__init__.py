"""
Work-reporting assistant: an LLM agent over a set of MCP tool-servers
"""

__version__ = "0.1.0"
