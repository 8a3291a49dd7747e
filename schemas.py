"""
Database Schemas

Pydantic models for the documents kept in the store, one per table:
- User -> "tbl_User"
- Group -> "tbl_Group"
- UserGroup -> "tbl_UserGroup"
- Message -> "tbl_Message"

Tables are schema-less. The fields below are the contract; any extra
field sent by a client is kept (extra="allow") and stored as is.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List


class User(BaseModel):
    """
    Users table schema
    Table name: "tbl_User"
    """
    model_config = ConfigDict(extra="allow")

    email: str = Field(..., description="User email address")
    fname: str = Field(..., description="First name")
    lname: str = Field(..., description="Last name")
    date_created: str = Field(..., description="ISO-8601 creation timestamp")


class Group(BaseModel):
    """
    Groups table schema
    Table name: "tbl_Group"
    """
    model_config = ConfigDict(extra="allow")

    group_name: str = Field(..., description="Display name of the group")
    creator_id: str = Field(..., description="User ID of the creator")
    date_created: str = Field(..., description="ISO-8601 creation timestamp")
    status: str = Field("Active", description="Group status")


class UserGroup(BaseModel):
    """
    Membership table schema, one document per group
    Table name: "tbl_UserGroup"
    """
    group_id: str = Field(..., description="ID of the group")
    member_ids: List[str] = Field(default_factory=list, description="Ordered member user ids, duplicates kept")


class Message(BaseModel):
    """
    Messages table schema
    Table name: "tbl_Message"
    """
    model_config = ConfigDict(extra="allow")

    sender_id: str = Field(..., description="User ID of the sender")
    receiver_id: str = Field(..., description="User or group ID of the receiver")
    message: str = Field(..., description="Message text")
    date_created: str = Field(..., description="ISO-8601 creation timestamp")
