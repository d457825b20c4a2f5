# apps/accounts/authentication.py
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, AuthenticationFailed
from django.core.cache import cache

class SecureJWTAuthentication(JWTAuthentication):
    """
    Extends JWT Authentication with revocation via a cache blocklist.
    Admin tooling revokes a banned driver by blocklisting the token's jti,
    which cuts off polling immediately instead of at token expiry.
    """
    def get_validated_token(self, raw_token):
        try:
            validated_token = super().get_validated_token(raw_token)
        except InvalidToken:
            raise InvalidToken("Token is invalid or expired")

        jti = validated_token.get('jti')
        if jti and cache.get(f"blocklist:{jti}"):
            raise AuthenticationFailed("This session has been revoked.")

        return validated_token
