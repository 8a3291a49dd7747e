import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, settings as default_settings
from database import DocumentStore
from services import Err, GroupService, MessageService, Result, UserService

logger = logging.getLogger(__name__)


# Request bodies. Required fields are checked by the services so a missing
# one is answered with 400 and a readable message; unknown keys are kept.

class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    email: Optional[str] = None
    fname: Optional[str] = None
    lname: Optional[str] = None

class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: Optional[str] = None

class CreateGroupRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    group_name: Optional[str] = None
    creator_id: Optional[str] = None

class AddGroupUserRequest(BaseModel):
    member_id: Optional[str] = None
    user_id: Optional[str] = None

class CreateMessageRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    message: Optional[str] = None
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None

class DeleteMessageRequest(BaseModel):
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None


def body_of(payload: Optional[BaseModel], **kwargs) -> dict:
    # a request without a body is treated as one with every field missing
    return payload.model_dump(**kwargs) if payload is not None else {}


def respond(result: Result):
    if isinstance(result, Err):
        logger.info("Request rejected (%d): %s", result.status, result.message)
        return JSONResponse(
            status_code=result.status,
            content={"status": result.status, "message": result.message},
        )
    return result.value


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store

def get_user_service(store: DocumentStore = Depends(get_store)) -> UserService:
    return UserService(store)

def get_group_service(store: DocumentStore = Depends(get_store)) -> GroupService:
    return GroupService(store)

def get_message_service(store: DocumentStore = Depends(get_store)) -> MessageService:
    return MessageService(store)


def create_app(store: Optional[DocumentStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.store is None
        if owned:
            app.state.store = DocumentStore.from_settings(settings)
        await app.state.store.connect()
        logger.info("Application startup")
        try:
            yield
        finally:
            if owned:
                await app.state.store.close()
                app.state.store = None
            logger.info("Application shutdown")

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.store = store

    def internal_error(exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        message = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(status_code=500, content={"status": 500, "message": message})

    # Registered before CORS so that CORS wraps it and 500s keep their
    # Access-Control-* headers.
    @app.middleware("http")
    async def catch_unhandled(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return internal_error(exc)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content="404 not found")
        return JSONResponse(status_code=exc.status_code, content={"status": exc.status_code, "message": exc.detail})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        return internal_error(exc)

    @app.get("/")
    def read_root():
        return {"message": f"{settings.app_name} is running", "status": "healthy"}

    # Users

    @app.post("/user")
    async def create_user(payload: Optional[CreateUserRequest] = None, service: UserService = Depends(get_user_service)):
        return respond(await service.create_user(body_of(payload)))

    @app.get("/user")
    async def get_all_users(service: UserService = Depends(get_user_service)):
        return respond(await service.get_all_users())

    @app.put("/user")
    async def update_user(payload: Optional[UpdateUserRequest] = None, service: UserService = Depends(get_user_service)):
        return respond(await service.update_user(body_of(payload, exclude_unset=True)))

    @app.get("/user/{user_id}")
    async def get_user(user_id: str, service: UserService = Depends(get_user_service)):
        return respond(await service.get_user_by_id(user_id))

    @app.delete("/user/{user_id}")
    async def delete_user(user_id: str, service: UserService = Depends(get_user_service)):
        return respond(await service.delete_user(user_id))

    @app.get("/user/{user_id}/group")
    async def get_user_groups(user_id: str, service: UserService = Depends(get_user_service)):
        return respond(await service.get_user_groups(user_id))

    @app.delete("/user/{member_id}/group/{group_id}")
    async def remove_member_from_group(member_id: str, group_id: str, service: UserService = Depends(get_user_service)):
        return respond(await service.remove_member_from_group(group_id, member_id))

    # Messages

    @app.post("/message")
    async def create_message(payload: Optional[CreateMessageRequest] = None, service: MessageService = Depends(get_message_service)):
        return respond(await service.create_message(body_of(payload)))

    @app.get("/message/receiver/{receiver_id}")
    async def get_messages_received(receiver_id: str, service: MessageService = Depends(get_message_service)):
        return respond(await service.get_all_messages_received(receiver_id))

    @app.get("/message/receiver/{receiver_id}/sender/{sender_id}")
    async def get_conversation(receiver_id: str, sender_id: str, service: MessageService = Depends(get_message_service)):
        return respond(await service.get_conversation(receiver_id, sender_id))

    @app.delete("/message/user/{receiver_id}/sender/{sender_id}")
    async def delete_conversation(receiver_id: str, sender_id: str, service: MessageService = Depends(get_message_service)):
        return respond(await service.delete_conversation(receiver_id, sender_id))

    @app.delete("/message/{message_id}")
    async def delete_message(
        message_id: str,
        payload: Optional[DeleteMessageRequest] = None,
        service: MessageService = Depends(get_message_service),
    ):
        receiver_id = payload.receiver_id if payload else None
        return respond(await service.delete_message(message_id, receiver_id))

    # Groups

    @app.post("/group")
    async def create_group(payload: Optional[CreateGroupRequest] = None, service: GroupService = Depends(get_group_service)):
        return respond(await service.create_group(body_of(payload)))

    @app.put("/group/{group_id}/user")
    async def add_user_to_group(group_id: str, payload: Optional[AddGroupUserRequest] = None, service: GroupService = Depends(get_group_service)):
        body = body_of(payload)
        return respond(await service.add_user_to_group(group_id, body.get("member_id"), body.get("user_id")))

    @app.get("/group/{group_id}")
    async def get_group_users(group_id: str, service: GroupService = Depends(get_group_service)):
        return respond(await service.get_users_of_group(group_id))

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
