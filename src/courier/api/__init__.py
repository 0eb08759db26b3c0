"""HTTP / websocket front end for the dispatch service."""

from courier.api.app import create_app

__all__ = ["create_app"]
