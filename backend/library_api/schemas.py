"""Pydantic request/response schemas used by the API.

Field names follow the JSON documents on disk (camelCase, and `class`
for the student's class which is exposed through an alias). Update
schemas forbid unknown fields so neither the unique key nor the stored
credential hash can be overwritten through a partial update.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class PartialUpdate(BaseModel):
    """Base for update payloads: absent fields are kept, explicit nulls rejected."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                field = type(self).model_fields[name]
                raise ValueError(f"{field.alias or name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class StudentRegisterIn(BaseModel):
    """Payload for student registration."""
    model_config = ConfigDict(populate_by_name=True)

    name: NonEmptyStr
    admissionNumber: NonEmptyStr
    class_: NonEmptyStr = Field(alias="class")
    section: NonEmptyStr
    gender: NonEmptyStr
    mobileNumber: NonEmptyStr
    address: NonEmptyStr
    password: str = Field(min_length=6)

    def record_fields(self) -> dict:
        """Stored fields without the raw password."""
        return self.model_dump(by_alias=True, exclude={"password"})


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    admissionNumber: NonEmptyStr
    password: str = Field(min_length=1)


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    token: str


class StudentUpdateIn(PartialUpdate):
    """Partial student update; only the fields sent are changed."""
    name: Optional[NonEmptyStr] = None
    class_: Optional[NonEmptyStr] = Field(default=None, alias="class")
    section: Optional[NonEmptyStr] = None
    gender: Optional[NonEmptyStr] = None
    mobileNumber: Optional[NonEmptyStr] = None
    address: Optional[NonEmptyStr] = None


class BookIn(BaseModel):
    """Payload for adding a book."""
    title: NonEmptyStr
    author: NonEmptyStr
    isbn: NonEmptyStr
    publicationYear: int
    genre: NonEmptyStr
    copiesAvailable: int = Field(ge=0)


class BookUpdateIn(PartialUpdate):
    """Partial book update; the ISBN itself is not updatable."""
    title: Optional[NonEmptyStr] = None
    author: Optional[NonEmptyStr] = None
    publicationYear: Optional[int] = None
    genre: Optional[NonEmptyStr] = None
    copiesAvailable: Optional[int] = Field(default=None, ge=0)
