"""Clients for the managed search and AI backends."""

from ghibli_search.backend.workers_ai import WorkersAIClient

__all__ = ["WorkersAIClient"]
