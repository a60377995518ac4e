"""
Domain logic for the edge gateway.

Holds the access decision state machine, the login and ratings handlers,
the request guards they share, and the HTML pages the gateway emits.
"""

from .access_gateway import AccessDecision, AccessGateway, AccessOutcome
from .login_handler import LoginHandler, LoginResult
from .ratings_handler import RatingsHandler

__all__ = [
    "AccessDecision",
    "AccessGateway",
    "AccessOutcome",
    "LoginHandler",
    "LoginResult",
    "RatingsHandler",
]
