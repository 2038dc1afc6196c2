from typing import Literal

from pydantic import BaseModel, Field

RightName = Literal["unverified", "blocked", "allowed", "trusted"]
AuthorRightName = Literal["unknown", "unverified", "blocked", "allowed", "trusted"]
FilterOperator = Literal["AND", "OR"]


class SourceRightsOut(BaseModel):
    source_id: int
    job: int = Field(ge=0, le=3)
    training: int = Field(ge=0, le=3)


class UserRightsOut(BaseModel):
    user_id: int
    rights: list[SourceRightsOut] = Field(default_factory=list)


class ConsolidatedRightOut(BaseModel):
    code: int
    name: RightName
    sources: list[int] = Field(default_factory=list)


class AllowedOrTrustedOut(BaseModel):
    user_id: int
    content_kind: str
    allowed_or_trusted: bool


class DocumentIn(BaseModel):
    id: int | None = None
    content_kind: str
    owner_id: int | None = None
    source_ids: list[int] = Field(default_factory=list)
    moderation_status: str = "draft"


class EditAccessRequest(BaseModel):
    user_id: int | None = None
    document: DocumentIn
    status: str | None = None


class EditAccessOut(BaseModel):
    user_id: int | None = None
    document_id: int | None = None
    can_edit: bool


class AuthorRightRequest(BaseModel):
    document: DocumentIn


class AuthorRightOut(BaseModel):
    document_id: int | None = None
    owner_id: int | None = None
    right: AuthorRightName


class StatusFromRightsRequest(BaseModel):
    user_id: int | None = None
    role: str = Field(min_length=1)
    document: DocumentIn
    statuses: list[str] = Field(default_factory=lambda: ["pending"])


class StatusFromRightsOut(BaseModel):
    updated: bool
    status: str
    previous_status: str
    scenario: str | None = None
    message: str | None = None


class StatusMappingOut(BaseModel):
    mapping: dict[str, dict[str, dict[str, str]]] = Field(default_factory=dict)


class StatusMappingUpdateRequest(BaseModel):
    mapping: dict[str, dict[str, dict[str, str]]]
