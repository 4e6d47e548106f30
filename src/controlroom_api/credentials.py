"""Credential and bearer header values.

A :class:`Credential` holds a username and exactly one secret (password or
API key). Secrets are kept as :class:`pydantic.SecretStr` so they never show
up in reprs or log output, and :meth:`Credential.secret_scope` guarantees the
credential is cleared once the secret has been used.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import pydantic

from .errors import ValidationError

AUTH_HEADER_KEY = "X-Authorization"


class Credential(pydantic.BaseModel):
    """Username plus either a password or an API key.

    The username may carry a domain, e.g. ``DOMAIN\\alice``.
    """

    username: str
    password: pydantic.SecretStr | None = None
    api_key: pydantic.SecretStr | None = None

    @pydantic.model_validator(mode="after")
    def check_exactly_one_secret(self) -> "Credential":
        if (self.password is None) == (self.api_key is None):
            msg = "Credential needs exactly one of password or api_key"
            raise ValueError(msg)
        return self

    @classmethod
    def create(
        cls,
        username: str,
        password: str | None = None,
        api_key: str | None = None,
    ) -> "Credential":
        """Build a credential, raising :class:`ValidationError` on bad input."""
        try:
            return cls(username=username, password=password, api_key=api_key)
        except pydantic.ValidationError as exc:
            msg = f"Invalid credential for {username!r}"
            raise ValidationError(msg, details=str(exc)) from exc

    @property
    def uses_api_key(self) -> bool:
        return self.api_key is not None

    @property
    def is_cleared(self) -> bool:
        return self.password is None and self.api_key is None

    def clear(self) -> None:
        """Drop both secrets. The credential cannot be used afterwards."""
        self.password = None
        self.api_key = None

    @contextmanager
    def secret_scope(self) -> Iterator[str]:
        """Yield the plaintext secret and clear the credential on exit.

        Clearing happens on every exit path, including exceptions raised
        inside the ``with`` block.

        Raises:
            ValidationError: If the credential was already cleared.
        """
        secret = self.api_key if self.api_key is not None else self.password
        if secret is None:
            msg = f"Credential for {self.username!r} has already been cleared"
            raise ValidationError(msg)
        try:
            yield secret.get_secret_value()
        finally:
            self.clear()


class AuthHeader(pydantic.BaseModel):
    """Bearer token header produced by a successful login."""

    model_config = pydantic.ConfigDict(frozen=True)

    key: str = AUTH_HEADER_KEY
    value: pydantic.SecretStr

    @classmethod
    def from_token(cls, token: str) -> "AuthHeader":
        return cls(value=pydantic.SecretStr(token))

    def as_dict(self) -> dict[str, str]:
        return {self.key: self.value.get_secret_value()}
