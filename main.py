import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.errors import DuplicateKeyError, PyMongoError

import ownership
from config import Settings
from database import Database
from errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    RequestTimeout,
    UnauthorizedError,
    ValidationError,
    register_error_handlers,
    storage_error,
)
from schemas import (
    Blog,
    BlogCreate,
    BlogUpdate,
    LoginRequest,
    PLACEHOLDER_IMAGE,
    SignupRequest,
    User,
    public_blog,
    public_user,
)
from security import (
    configure_hashing,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


# Dependencies

def get_db(request: Request) -> Database:
    return request.app.state.db


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials, settings)


def check_owner(db: Database, blog_id: str, actor: Optional[str], settings: Settings) -> None:
    if not settings.enforce_ownership:
        return
    blog = db.find_blog(blog_id)
    if blog is None:
        return
    if actor is None or actor != str(blog["user"]):
        raise ForbiddenError()


# User routes
user_router = APIRouter(prefix="/api/user", tags=["user"])


@user_router.get("")
def get_all_users(db: Database = Depends(get_db)):
    try:
        users = db.list_users()
    except PyMongoError as e:
        raise storage_error(e, NotFoundError("users are not found"))
    return {"users": [public_user(u) for u in users]}


@user_router.post("/signup", status_code=201)
def signup(payload: SignupRequest, db: Database = Depends(get_db)):
    try:
        if db.find_user_by_email(payload.email):
            raise ConflictError("User is already exists!")
        try:
            password_hash = hash_password(payload.password)
        except ValueError:
            raise ValidationError("Password contains unsupported characters")
        user = User(name=payload.name, email=payload.email, password_hash=password_hash)
        doc = db.create_user(user.model_dump())
    except DuplicateKeyError:
        raise ConflictError("User is already exists!")
    except PyMongoError as e:
        raise storage_error(e, InternalError("Unable to sign up"))
    logger.info("user %s signed up", doc["_id"])
    return {"user": public_user(doc)}


@user_router.post("/login")
def login(
    payload: LoginRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user = db.find_user_by_email(payload.email)
    except PyMongoError as e:
        raise storage_error(e, InternalError("Unable to log in"))
    if not user:
        raise NotFoundError("User is not found")
    if not verify_password(payload.password, user.get("password_hash", "")):
        logger.info("failed login for user %s", user["_id"])
        raise UnauthorizedError("Incorrect Password!")

    token = create_access_token({"sub": str(user["_id"]), "email": user.get("email")}, settings)
    return {"user": public_user(user), "token": token}


# Blog routes
blog_router = APIRouter(prefix="/api/blog", tags=["blog"])


@blog_router.get("")
def get_all_blogs(db: Database = Depends(get_db)):
    try:
        blogs = db.list_blogs()
        owners = db.find_owners(b["user"] for b in blogs)
    except PyMongoError as e:
        raise storage_error(e, NotFoundError("No blogs found"))
    return {"blogs": [public_blog(b, owners.get(b["user"])) for b in blogs]}


@blog_router.post("/add")
def add_blog(payload: BlogCreate, db: Database = Depends(get_db)):
    try:
        owner = db.find_user(payload.user)
    except PyMongoError as e:
        raise storage_error(e, InternalError("Unable to add blog"))
    if not owner:
        raise UnauthorizedError("Unauthorized")

    blog = Blog(
        title=payload.title,
        desc=payload.desc,
        img=payload.img or PLACEHOLDER_IMAGE,
        user=owner["_id"],
    )
    try:
        doc = ownership.add_blog(db, owner, blog)
    except PyMongoError as e:
        raise storage_error(e, InternalError("Unable to add blog"))
    return {"blog": public_blog(doc)}


@blog_router.put("/update/{blog_id}")
def update_blog(
    blog_id: str,
    payload: BlogUpdate,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: Optional[str] = Depends(current_user_id),
):
    check_owner(db, blog_id, actor, settings)
    try:
        blog = db.update_blog(blog_id, payload.changes())
    except PyMongoError as e:
        raise storage_error(e, InternalError("Unable to update"))
    if not blog:
        raise InternalError("Unable to update")
    return {"blog": public_blog(blog)}


@blog_router.get("/user/{user_id}")
def get_by_user_id(user_id: str, db: Database = Depends(get_db)):
    try:
        user = db.find_user(user_id)
        if not user:
            raise NotFoundError("No Blog Found")
        blogs = db.find_blogs(user.get("blogs", []))
    except PyMongoError as e:
        raise storage_error(e, NotFoundError("No Blog Found"))
    out = public_user(user)
    out["blogs"] = [public_blog(b) for b in blogs]
    return {"user": out}


@blog_router.get("/{blog_id}")
def get_by_id(blog_id: str, db: Database = Depends(get_db)):
    try:
        blog = db.find_blog(blog_id)
    except PyMongoError as e:
        raise storage_error(e, InternalError("not found"))
    if not blog:
        raise InternalError("not found")
    return {"blog": public_blog(blog)}


@blog_router.delete("/{blog_id}")
def delete_blog(
    blog_id: str,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: Optional[str] = Depends(current_user_id),
):
    check_owner(db, blog_id, actor, settings)
    try:
        blog = ownership.delete_blog(db, blog_id)
    except PyMongoError as e:
        raise storage_error(e, InternalError("Unable to delete"))
    if blog is None:
        raise NotFoundError("Blog not found")
    return {"message": "Successfully deleted"}


# App setup

class RequestTimeoutMiddleware:
    """Answer 504 once a request has run longer than ``timeout`` seconds.

    Sync routes run in worker threads that cannot be cancelled, so the
    handler is left to finish in the background and anything it sends
    after the deadline is dropped.
    """

    def __init__(self, app, timeout: float):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = {"started": False, "timed_out": False}

        async def guarded_send(message):
            if state["timed_out"]:
                return
            if message["type"] == "http.response.start":
                state["started"] = True
            await send(message)

        task = asyncio.ensure_future(self.app(scope, receive, guarded_send))
        done, _ = await asyncio.wait({task}, timeout=self.timeout)
        if task in done or state["started"]:
            await task
            return

        state["timed_out"] = True
        task.add_done_callback(_log_late_failure)
        logger.warning("%s %s timed out", scope["method"], scope["path"])
        response = JSONResponse(status_code=504, content={"message": RequestTimeout.message})
        await response(scope, receive, send)


def _log_late_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("request failed after timing out: %s", task.exception())


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_hashing(settings.bcrypt_rounds)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.db is None
        if owned:
            app.state.db = Database.connect(settings)
        app.state.db.ensure_indexes()
        logger.info("blog api started")
        yield
        if owned:
            app.state.db.close()
        logger.info("blog api stopped")

    app = FastAPI(title="Blog API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db

    app.add_middleware(RequestTimeoutMiddleware, timeout=settings.request_timeout_ms / 1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    @app.get("/api/health")
    def health(db: Database = Depends(get_db)):
        try:
            db.ping()
        except PyMongoError as e:
            logger.error("health check failed: %s", e)
            return JSONResponse(status_code=503, content={"message": "Database not available"})
        return {"status": "ok", "database": "connected"}

    app.include_router(user_router)
    app.include_router(blog_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
