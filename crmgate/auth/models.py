"""Models for auth-related requests."""

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Body of a login request.

    :param secret_key: The user's secret key, sent as ``secretKey``
    """

    model_config = ConfigDict(populate_by_name=True)

    secret_key: str | None = Field(default=None, alias="secretKey")
