"""
Conversation context for the assistant
"""

from reporter.context_manager.manager import ContextManager

__all__ = ["ContextManager"]
