"""HTTP facade over the SAR index and document builders."""

from sardocs.api.app import create_app

__all__ = ["create_app"]
