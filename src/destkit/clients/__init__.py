# SPDX-License-Identifier: Apache-2.0
"""httpx implementations of the client protocols in `destkit.api.clients`."""

from .graphql import GraphQLTableApi
from .oauth import OAuthTokenClient
from .webhook import WebhookClient

__all__ = ["GraphQLTableApi", "OAuthTokenClient", "WebhookClient"]
