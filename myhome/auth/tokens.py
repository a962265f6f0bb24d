# /myhome/auth/tokens.py
from dataclasses import dataclass
from typing import Tuple

from flask_jwt_extended import create_access_token, create_refresh_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import ExpiredSignatureError, InvalidTokenError

from myhome.errors import ExpiredToken, InvalidToken

ACCESS_TYPE = 'access'
REFRESH_TYPE = 'refresh'


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self):
        return {'accessToken': self.access_token, 'refreshToken': self.refresh_token}


@dataclass(frozen=True)
class TokenPayload:
    identity_id: int
    token_type: str
    claims: dict

    @property
    def is_refresh(self) -> bool:
        return self.token_type == REFRESH_TYPE


class TokenService:
    """
    Issues and verifies the signed access/refresh tokens.
    Signing keys and default lifetimes come from the JWT_* settings of the current app.
    """

    def issue_access_token(self, identity_id, expires_delta=None) -> str:
        return create_access_token(identity=str(identity_id), expires_delta=expires_delta)

    def issue_refresh_token(self, identity_id, expires_delta=None) -> str:
        return create_refresh_token(identity=str(identity_id), expires_delta=expires_delta)

    def issue_pair(self, identity_id) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(identity_id),
            refresh_token=self.issue_refresh_token(identity_id),
        )

    def verify(self, token: str) -> TokenPayload:
        """
        Checks signature and expiry.

        Raises:
            ExpiredToken: the token was well-formed and signed but its lifetime has passed.
            InvalidToken: anything else wrong with it.
        """
        if not token or not isinstance(token, str):
            raise InvalidToken()
        try:
            claims = decode_token(token)
        except ExpiredSignatureError:
            raise ExpiredToken()
        except (InvalidTokenError, JWTExtendedException):
            raise InvalidToken()

        try:
            identity_id = int(claims['sub'])
        except (KeyError, TypeError, ValueError):
            raise InvalidToken()
        return TokenPayload(identity_id=identity_id, token_type=claims.get('type'), claims=claims)

    def refresh_access_token(self, refresh_token: str) -> Tuple[int, str]:
        """
        Mints a new access token from a valid refresh token.
        The refresh token itself is not rotated. Returns ``(identity_id, access_token)``.
        """
        payload = self.verify(refresh_token)
        if not payload.is_refresh:
            raise InvalidToken('Invalid refresh token')
        return payload.identity_id, self.issue_access_token(payload.identity_id)


token_service = TokenService()
