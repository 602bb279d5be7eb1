from pydantic import BaseModel, ConfigDict, Field, field_validator


class SecretCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., description="Plaintext to encrypt and store")
    view_limit: int | float | str | None = Field(
        default=None,
        alias="viewLimit",
        description="Number of reveals allowed before the secret is destroyed",
    )
    expiration_minutes: int | float | str | None = Field(
        default=None,
        alias="expirationMinutes",
        description="Minutes until the secret expires even if never read",
    )

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v:
            raise ValueError("Please provide some text to encrypt.")
        return v


class SecretCreateResponse(BaseModel):
    id: str


class SecretRevealResponse(BaseModel):
    id: str
    text: str
