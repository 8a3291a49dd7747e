"""
Service layer for users, groups and messages.

Every service method returns a Result: Ok(value) on success, or
Err(status, message) when the request is rejected. Not-found and empty
results are successes carrying an informational string.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from database import DocumentStore
from schemas import Group, Message, User, UserGroup

logger = logging.getLogger(__name__)


@dataclass
class Ok:
    value: Any


@dataclass
class Err:
    status: int
    message: str


Result = Union[Ok, Err]

DELETED = {"deleted": True}


def validation_error(message: str) -> Err:
    return Err(400, message)


def authorization_error(message: str) -> Err:
    return Err(401, message)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _missing(body: Dict[str, Any], *checks) -> Optional[Err]:
    for field, message in checks:
        if not body.get(field):
            return validation_error(message)
    return _bad_field_names(body)


def _bad_field_names(body: Dict[str, Any]) -> Optional[Err]:
    # Mongo reads "$x" as an operator and "a.b" as a nested path
    for key in body:
        if key.startswith("$") or "." in key:
            return validation_error(f"Invalid field name: {key}")
    return None


class UserService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_user(self, body: Dict[str, Any]) -> Result:
        err = _missing(
            body,
            ("email", "Email is required"),
            ("fname", "First name is required"),
            ("lname", "Last name is required"),
        )
        if err:
            return err
        user = User(**{**body, "date_created": _now()})
        user_id = await self.store.users.insert(user)
        logger.info("Created user %s", user_id)
        return Ok({**user.model_dump(), "id": user_id})

    async def get_user_by_id(self, user_id: str) -> Result:
        user = await self.store.users.get(user_id)
        return Ok(user if user else "No user found")

    async def get_all_users(self) -> Result:
        users = await self.store.users.all()
        return Ok(users if users else "No users found")

    async def update_user(self, body: Dict[str, Any]) -> Result:
        user_id = body.get("id")
        if not user_id:
            return validation_error("Id is required")
        err = _bad_field_names(body)
        if err:
            return err
        result = await self.store.users.update(user_id, body)
        if result.replaced + result.unchanged != 1:
            return validation_error("No user matched the given id")
        return Ok(await self.store.users.get(user_id))

    async def delete_user(self, user_id: str) -> Result:
        # reports success whether or not a record matched
        removed = await self.store.users.delete(user_id)
        logger.info("Deleted user %s (%d removed)", user_id, removed)
        return Ok(DELETED)

    async def get_user_groups(self, user_id: str) -> Result:
        memberships = await self.store.user_groups.filter({"member_ids": user_id})
        joined = await self.store.user_groups.merge(memberships, "group_id", self.store.groups, "group")
        groups = []
        for row in joined:
            if row["group"] is None:
                continue
            merged = {k: v for k, v in row.items() if k not in ("group_id", "member_ids", "group")}
            merged.update(row["group"])
            groups.append(merged)
        return Ok(groups)

    async def remove_member_from_group(self, group_id: str, member_id: str) -> Result:
        user_group = await self.store.user_groups.first({"group_id": group_id}) or {}
        member_ids = [m for m in user_group.get("member_ids", []) if m != member_id]
        if user_group:
            await self.store.user_groups.replace({**user_group, "member_ids": member_ids})
        else:
            logger.warning("No membership record for group %s", group_id)
        return Ok(DELETED)


class GroupService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_group(self, body: Dict[str, Any]) -> Result:
        err = _missing(
            body,
            ("group_name", "Group name is required"),
            ("creator_id", "Creator id is required"),
        )
        if err:
            return err

        # the group is still created when no user exists; the caller only
        # gets the warning back
        no_users = await self.store.users.count() == 0
        if no_users:
            logger.warning("Creating group %r while no users exist", body["group_name"])

        group = Group(**{**body, "date_created": _now(), "status": "Active"})
        group_id = await self.store.groups.insert(group)
        user_group = UserGroup(group_id=group_id, member_ids=[body["creator_id"]])
        user_group_id = await self.store.user_groups.insert(user_group)
        logger.info("Created group %s with membership %s", group_id, user_group_id)

        if no_users:
            return Ok("No users exist")
        return Ok({
            **group.model_dump(),
            "id": group_id,
            "user_group_id": user_group_id,
            "member_ids": user_group.member_ids,
        })

    async def add_user_to_group(self, group_id: str, member_id: Any, user_id: Any) -> Result:
        if not member_id:
            return validation_error("Member id is required")
        if not user_id:
            return validation_error("User id is required")

        user_group = await self.store.user_groups.first({"group_id": group_id})
        member_ids = user_group["member_ids"] if user_group else []
        if member_id not in member_ids:
            logger.warning("Rejected add to group %s: %s is not a member", group_id, member_id)
            return authorization_error("Member is not part of this group")

        member_ids = member_ids + [user_id]
        await self.store.user_groups.replace({**user_group, "member_ids": member_ids})
        return Ok({"id": group_id, "member_ids": member_ids})

    async def get_users_of_group(self, group_id: str) -> Result:
        user_group = await self.store.user_groups.first({"group_id": group_id})
        if not user_group:
            return Ok([])
        members = [{"member_id": m} for m in user_group["member_ids"]]
        joined = await self.store.user_groups.merge(members, "member_id", self.store.users, "user")
        return Ok([row["user"] for row in joined])


class MessageService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def _with_sender(self, messages):
        return await self.store.messages.merge(messages, "sender_id", self.store.users, "sender")

    async def create_message(self, body: Dict[str, Any]) -> Result:
        err = _missing(
            body,
            ("message", "Message is required"),
            ("sender_id", "Sender id is required"),
            ("receiver_id", "Receiver id is required"),
        )
        if err:
            return err
        message = Message(**{**body, "date_created": _now()})
        message_id = await self.store.messages.insert(message)
        logger.info("Created message %s", message_id)
        return Ok({**message.model_dump(), "id": message_id})

    async def get_all_messages_received(self, receiver_id: str) -> Result:
        messages = await self.store.messages.filter({"receiver_id": receiver_id}, sort="date_created")
        if not messages:
            return Ok("No messages found")
        return Ok(await self._with_sender(messages))

    async def get_conversation(self, receiver_id: str, sender_id: str) -> Result:
        query = {"$or": [
            {"receiver_id": receiver_id, "sender_id": sender_id},
            {"receiver_id": sender_id, "sender_id": receiver_id},
        ]}
        messages = await self.store.messages.filter(query, sort="date_created")
        if not messages:
            return Ok("No conversation found")
        return Ok(await self._with_sender(messages))

    async def delete_message(self, message_id: str, receiver_id: str) -> Result:
        removed = await self.store.messages.delete(message_id)
        if not removed:
            return Ok("No message found to delete")
        logger.info("Deleted message %s", message_id)
        return await self.get_all_messages_received(receiver_id)

    async def delete_conversation(self, receiver_id: str, sender_id: str) -> Result:
        # one direction only: messages sent by sender_id to receiver_id
        removed = await self.store.messages.delete_where({"receiver_id": receiver_id, "sender_id": sender_id})
        if not removed:
            return Ok("No messages found to delete")
        logger.info("Deleted %d messages from %s to %s", removed, sender_id, receiver_id)
        return Ok(DELETED)
