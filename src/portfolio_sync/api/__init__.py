# API module - executor and resource client for the portfolio API
from .auth import BearerAuth
from .client import ResourceClient
from .constants import Endpoint, OrderEndpoints, ReadEndpoints
from .executor import RequestExecutor

__all__ = [
    "BearerAuth",
    "RequestExecutor",
    "ResourceClient",
    "Endpoint",
    "ReadEndpoints",
    "OrderEndpoints",
]
