import logging
from typing import Optional

from atproto import DidInMemoryCache, IdResolver, verify_jwt
from atproto.exceptions import TokenInvalidSignatureError

from feedgen import config

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class AuthorizationError(Exception):
    pass


class Verifier:
    """Turns a service-auth bearer token into the requester's DID."""

    def __init__(self, service_did: str = config.SERVICE_DID, resolver: IdResolver = None):
        self.service_did = service_did
        self.resolver = resolver or IdResolver(cache=DidInMemoryCache())

    def __call__(self, authorization: Optional[str], nsid: str) -> str:
        if not authorization:
            raise AuthorizationError("Authorization header is missing")
        if not authorization.startswith(BEARER_PREFIX):
            raise AuthorizationError("Invalid authorization header")

        jwt = authorization[len(BEARER_PREFIX):].strip()
        try:
            payload = verify_jwt(jwt, self.resolver.did.resolve_atproto_key, self.service_did)
        except TokenInvalidSignatureError as e:
            raise AuthorizationError("Invalid signature") from e

        lxm = getattr(payload, "lxm", None)
        if lxm and lxm != nsid:
            raise AuthorizationError(f"Token is scoped to {lxm}, not {nsid}")
        return payload.iss
