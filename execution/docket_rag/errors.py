"""
Exceptions shared across the Docket RAG adapters.
"""


class ExternalServiceError(Exception):
    """Raised when an external collaborator (extraction, embedding, vector store, LLM) fails."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service} error: {message}")
        self.service = service
        self.detail = message
