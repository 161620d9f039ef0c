# SPDX-License-Identifier: Apache-2.0

"""
Access token service.

Login and session handling live in the identity provider; this service only
verifies the RS256 bearer tokens it issues. Token minting is kept for
development tooling and tests.
"""

import os
import uuid
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from ..models.enums import UserRole

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT verification service with RS256 signing.

    Args:
        private_key: RS256 private key for token signing (PEM format)
        public_key: RS256 public key for token verification (PEM format)
        access_token_expire_minutes: Lifetime of minted access tokens
    """

    def __init__(self, private_key: Optional[str] = None, public_key: Optional[str] = None,
                 access_token_expire_minutes: int = 15):
        private_key = private_key or os.getenv("JWT_PRIVATE_KEY")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY")

        if not public_key:
            # Development only: both halves must come from the same pair
            logger.warning("No JWT_PUBLIC_KEY found, generating development key pair")
            private_key, public_key = self._generate_dev_key_pair()

        self.private_key = private_key
        self.public_key = public_key
        self.algorithm = "RS256"
        self.access_token_expire_minutes = access_token_expire_minutes

    def _generate_dev_key_pair(self) -> Tuple[str, str]:
        """Generate RSA key pair for development use."""
        private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=2048
        )

        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ).decode('utf-8')

        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode('utf-8')

        return private_pem, public_pem

    def issue_access_token(self, user_id: str, name: str, role: UserRole,
                           email: Optional[str] = None) -> Dict[str, Any]:
        """
        Mint an access token.

        Args:
            user_id: Subject of the token
            name: Display name carried into audit entries and queue metadata
            role: Barangay role
            email: Optional email claim

        Returns:
            Dictionary containing access_token and metadata
        """
        if not self.private_key:
            raise TokenValidationError("Token signing key is not configured")

        with tracer.start_as_current_span("auth.issue_access_token") as span:
            span.set_attributes({"user.id": user_id, "user.role": UserRole(role).value})

            now = datetime.now(timezone.utc)
            expires_at = now + timedelta(minutes=self.access_token_expire_minutes)
            payload = {
                "sub": user_id,
                "name": name,
                "role": UserRole(role).value,
                "email": email,
                "iat": now,
                "exp": expires_at,
                "jti": uuid.uuid4().hex,
                "type": "access"
            }

            token = jwt.encode(payload, self.private_key, algorithm=self.algorithm)
            return {
                "access_token": token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "expires_at": expires_at.isoformat()
            }

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.public_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub", "exp", "role"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type") != token_type:
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            try:
                UserRole(payload["role"])
            except ValueError:
                raise TokenValidationError(f"Unknown role: {payload['role']}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload.get("sub"),
                "user.role": payload.get("role")
            })
            return payload
