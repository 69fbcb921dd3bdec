from .client import AppServicesClient, default_client

__all__ = ["AppServicesClient", "default_client"]
