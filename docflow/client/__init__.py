"""
HTTP client for the DocFlow backend and the explicit user session it owns.
"""

from docflow.client.api import ApiError, DocflowClient, NotLoggedIn, TransportError
from docflow.client.session import UserSession

__all__ = ["ApiError", "DocflowClient", "NotLoggedIn", "TransportError", "UserSession"]
