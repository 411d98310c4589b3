"""
Request bodies accepted by the HTTP API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .core import ChatRole, FlowStep


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class EntryCreateRequest(_Request):
    title: str = Field(description="Entry title")
    content: str = Field(default="", description="Body text")
    folder_id: Optional[str] = Field(default=None, alias="folderId")


class EntryUpdateRequest(_Request):
    title: str
    content: str
    folder_id: Optional[str] = Field(
        default=None,
        alias="folderId",
        description="New folder; the current folder is kept when omitted",
    )


class FolderCreateRequest(_Request):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    color: Optional[str] = None


class FolderUpdateRequest(_Request):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None


class FolderMoveRequest(_Request):
    new_parent_id: Optional[str] = Field(default=None, alias="newParentId")


class RepositoryCreateRequest(_Request):
    name: Optional[str] = Field(
        default=None, description="Custom name; derived from the identity if omitted"
    )


class RepositorySelectRequest(_Request):
    name: str = Field(min_length=1)


class ProfileUpdateRequest(_Request):
    name: Optional[str] = None
    bio: Optional[str] = None
    additional_info: Optional[str] = Field(default=None, alias="additionalInfo")


class FlowCreateRequest(_Request):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    steps: List[FlowStep] = Field(default_factory=list)


class FlowUpdateRequest(_Request):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    steps: Optional[List[FlowStep]] = Field(
        default=None, description="Replacement steps; the current steps are kept when omitted"
    )


class FlowResponsesRequest(_Request):
    answers: Dict[str, Any] = Field(
        default_factory=dict, description="Answer per step ID"
    )


class ChatSessionCreateRequest(_Request):
    title: Optional[str] = Field(
        default=None, description="Defaults to the creation time"
    )


class ChatMessageRequest(_Request):
    role: ChatRole
    content: str
