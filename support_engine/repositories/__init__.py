"""
Support Engine Repositories

Async storage for tickets and comments. The in-memory implementations
stand in for the database layer.
"""

from .memory import InMemoryTicketRepository, InMemoryCommentRepository

__all__ = ["InMemoryTicketRepository", "InMemoryCommentRepository"]
