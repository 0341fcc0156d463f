import json
import logging
import os
import time
from contextlib import asynccontextmanager
from hmac import compare_digest
from typing import List, Optional
from urllib.parse import urlparse

from fastapi import Depends, FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from database import (
    KV_COLLECTION,
    SETTINGS_KEY,
    STATS_KEY,
    MESSAGE_PREFIX,
    kv_get,
    kv_get_by_prefix,
    kv_mdel,
    kv_set,
    message_key,
)
from embeds import classify_url
from markup import attachment_preview, parse_markup, reply_preview
from presence import heartbeat, load_stats, now_ms, prune, summary
from schemas import GUEST_NAME, CamelModel, Message, Settings
from storage import (
    BlobExists,
    BlobStore,
    attachment_blob_name,
    background_blob_name,
    signed_url,
    verify_blob_token,
)
from theme import (
    DEFAULT_MESSAGE_BACKGROUND,
    DEFAULT_NAME_COLOR,
    MESSAGE_BACKGROUND_PRESETS,
    NAME_COLOR_PRESETS,
    hex_to_rgba,
)

# Configure logging early
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logging.getLogger("chatroom").setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("chatroom.api")

DELETE_PASSWORD = os.getenv("DELETE_PASSWORD", "Ramakrishna")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "25"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()] or ["*"]

blob_store: Optional[BlobStore] = None


@asynccontextmanager
async def _lifespan(app: FastAPI):
    global blob_store
    if database.db is not None:
        try:
            blob_store = BlobStore(database.db)
            blob_store.ensure_bucket()
        except Exception:
            logger.exception("Blob store initialisation failed")
    else:
        logger.warning("DATABASE_URL/DATABASE_NAME not set, running without storage")
    yield


app = FastAPI(title="Chatroom API", lifespan=_lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        logger.info(json.dumps({
            "method": request.method,
            "path": request.url.path,
            "status": status_code,
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        }))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError):
    errors = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
    return JSONResponse(status_code=422, content={"success": False, "error": errors})


def get_blob_store() -> BlobStore:
    if blob_store is None:
        raise HTTPException(status_code=503, detail="Blob store not available")
    return blob_store


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _parent_host(request: Request) -> Optional[str]:
    # embeds are framed by the page that called us, not by this API host
    for header in ("origin", "referer"):
        host = urlparse(request.headers.get(header) or "").hostname
        if host:
            return host
    return request.url.hostname


# Schemas for requests
class CreateMessage(CamelModel):
    id: Optional[str] = None
    username: Optional[str] = None
    text: str = Field("", max_length=4000)
    timestamp: Optional[int] = None
    reply_to: Optional[str] = None
    file_url: Optional[str] = None
    file_type: Optional[str] = None
    file_name: Optional[str] = None
    name_color: Optional[str] = None
    message_background: Optional[str] = None


class EditMessage(CamelModel):
    id: Optional[str] = None
    new_text: Optional[str] = Field(None, max_length=4000)
    text: Optional[str] = Field(None, max_length=4000)
    username: Optional[str] = None


class DeleteMessages(CamelModel):
    ids: List[str] = Field(default_factory=list)
    password: Optional[str] = None


class PresenceUpdate(CamelModel):
    user_id: str = Field(..., min_length=1)
    is_new_visit: bool = False
    leave: bool = False


def render_message(msg: dict, messages: List[dict], parent_host: Optional[str] = None) -> dict:
    embed = classify_url(msg.get("text"), parent_host)
    has_file = bool(msg.get("fileUrl"))
    return {
        "embed": embed.to_dict() if embed else None,
        "segments": [] if embed else parse_markup(msg.get("text") or "", msg.get("fileName"), has_file),
        "attachment": None if embed else attachment_preview(msg),
        "reply": reply_preview(messages, msg.get("replyTo")),
    }


def _sorted_messages() -> List[dict]:
    messages = [m for m in kv_get_by_prefix(MESSAGE_PREFIX) if m]
    return sorted(messages, key=lambda m: m.get("timestamp") or 0)


@app.get("/")
def read_root():
    return {"message": "Chat room API ready"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "kv_collection": KV_COLLECTION,
        "blob_store": None,
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
            try:
                response["kv_documents"] = database.db[KV_COLLECTION].estimated_document_count()
                response["database"] = "✅ Connected & Working"
                response["connection_status"] = "Connected"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
            if blob_store is not None:
                try:
                    response["blob_store"] = blob_store.status()
                except Exception as e:
                    response["blob_store"] = f"⚠️ Error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Messages
@app.get("/messages")
def list_messages(request: Request, render: bool = False):
    try:
        messages = _sorted_messages()
    except Exception as e:
        logger.exception("Error fetching messages")
        raise HTTPException(status_code=500, detail=f"Fetch messages failed: {e}")
    if render:
        host = _parent_host(request)
        messages = [{**m, "rendered": render_message(m, messages, host)} for m in messages]
    return {"success": True, "messages": messages}


@app.post("/messages")
def create_message(payload: CreateMessage):
    now = now_ms()
    message = Message(
        id=payload.id or str(now),
        username=payload.username or GUEST_NAME,
        text=payload.text,
        timestamp=payload.timestamp or now,
        reply_to=payload.reply_to or None,
        file_url=payload.file_url or None,
        file_type=payload.file_type or None,
        file_name=payload.file_name or None,
        name_color=payload.name_color or None,
        message_background=payload.message_background or None,
    )
    try:
        doc = message.to_doc()
        kv_set(message_key(message.id), doc)
    except Exception as e:
        logger.exception("Error creating message")
        raise HTTPException(status_code=500, detail=f"Create message failed: {e}")
    return {"success": True, "message": doc}


def _edit_message(payload: EditMessage) -> dict:
    new_text = payload.new_text if payload.new_text is not None else payload.text
    if not payload.id or not isinstance(new_text, str) or not payload.username:
        raise HTTPException(status_code=400, detail="Invalid parameters")
    if payload.username == GUEST_NAME:
        raise HTTPException(status_code=403, detail="Guests cannot edit messages")
    new_text = new_text.strip()
    if not new_text:
        raise HTTPException(status_code=400, detail="Message text cannot be empty")

    try:
        existing = kv_get(message_key(payload.id))
        if not existing:
            raise HTTPException(status_code=404, detail="Message not found")
        if existing.get("username") != payload.username:
            raise HTTPException(status_code=403, detail="You can only edit your own messages")

        updated = {**existing, "text": new_text, "edited": True, "editedAt": now_ms()}
        kv_set(message_key(payload.id), updated)
        return {"success": True, "message": updated}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error editing message")
        raise HTTPException(status_code=500, detail=f"Edit message failed: {e}")


@app.post("/messages/edit")
def edit_message(payload: EditMessage):
    return _edit_message(payload)


@app.put("/messages")
def replace_message_text(payload: EditMessage):
    return _edit_message(payload)


@app.post("/messages/delete")
def delete_messages(payload: DeleteMessages):
    if not payload.password or not compare_digest(payload.password.encode(), DELETE_PASSWORD.encode()):
        raise HTTPException(status_code=403, detail="Wrong password")
    try:
        deleted = kv_mdel(message_key(i) for i in payload.ids)
    except Exception as e:
        logger.exception("Error deleting messages")
        raise HTTPException(status_code=500, detail=f"Delete messages failed: {e}")
    logger.info("deleted %s messages", deleted)
    return {"success": True, "deleted": deleted}


@app.post("/render")
def render_preview(payload: CreateMessage, request: Request):
    msg = payload.model_dump(by_alias=True)
    messages: List[dict] = []
    if payload.reply_to:
        try:
            messages = _sorted_messages()
        except Exception as e:
            logger.exception("Error fetching messages for render")
            raise HTTPException(status_code=500, detail=f"Render failed: {e}")
    return {"success": True, **render_message(msg, messages, _parent_host(request))}


# Uploads
async def _store_upload(file: Optional[UploadFile], name_for, store: BlobStore) -> tuple:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    too_large = HTTPException(status_code=413, detail=f"File too large (max {MAX_UPLOAD_MB}MB)")
    if file.size is not None and file.size > MAX_UPLOAD_BYTES:
        raise too_large
    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise too_large
    name = name_for(file.filename)
    try:
        store.upload(name, data, file.content_type)
    except BlobExists:
        raise HTTPException(status_code=500, detail=f"File already exists: {name}")
    except Exception as e:
        logger.exception("Storage upload error")
        raise HTTPException(status_code=500, detail=f"Upload failed: {e}")
    return name, file


@app.post("/upload")
async def upload_file(request: Request, file: Optional[UploadFile] = File(None), store: BlobStore = Depends(get_blob_store)):
    name, file = await _store_upload(file, attachment_blob_name, store)
    return {
        "success": True,
        "fileUrl": _base_url(request) + signed_url(name),
        "fileType": file.content_type,
        "fileName": file.filename,
    }


@app.post("/upload-background")
async def upload_background(request: Request, file: Optional[UploadFile] = File(None), store: BlobStore = Depends(get_blob_store)):
    name, _ = await _store_upload(file, background_blob_name, store)
    return {"success": True, "url": _base_url(request) + signed_url(name)}


@app.get("/files/{name}")
def read_file(name: str, token: str = "", store: BlobStore = Depends(get_blob_store)):
    verify_blob_token(token, name)
    try:
        found = store.download(name)
    except Exception as e:
        logger.exception("Storage download error")
        raise HTTPException(status_code=500, detail=f"Download failed: {e}")
    if found is None:
        raise HTTPException(status_code=404, detail="File not found")
    data, content_type = found
    return Response(content=data, media_type=content_type or "application/octet-stream")


# Settings
@app.get("/settings")
def get_settings():
    try:
        stored = kv_get(SETTINGS_KEY)
        settings = Settings.model_validate(stored) if stored else Settings()
    except Exception as e:
        logger.exception("Error fetching settings")
        raise HTTPException(status_code=500, detail=f"Fetch settings failed: {e}")
    return {
        "success": True,
        "settings": settings.to_doc(),
        "panelBackground": hex_to_rgba(settings.panel_color, settings.panel_opacity),
    }


@app.post("/settings")
def update_settings(payload: Settings):
    try:
        kv_set(SETTINGS_KEY, payload.to_doc())
    except Exception as e:
        logger.exception("Error updating settings")
        raise HTTPException(status_code=500, detail=f"Update settings failed: {e}")
    return {"success": True}


@app.get("/theme/presets")
def get_theme_presets():
    return {
        "success": True,
        "nameColors": NAME_COLOR_PRESETS,
        "messageBackgrounds": MESSAGE_BACKGROUND_PRESETS,
        "guestDefaults": {"nameColor": DEFAULT_NAME_COLOR, "messageBackground": DEFAULT_MESSAGE_BACKGROUND},
    }


# Presence
@app.get("/stats")
def get_stats():
    try:
        stats = prune(load_stats(kv_get(STATS_KEY)), now_ms())
    except Exception as e:
        logger.exception("Error fetching stats")
        raise HTTPException(status_code=500, detail=f"Fetch stats failed: {e}")
    return {"success": True, **summary(stats)}


@app.post("/presence")
async def update_presence(request: Request):
    # navigator.sendBeacon posts text/plain, so the body is parsed by hand
    try:
        update = PresenceUpdate.model_validate(json.loads(await request.body()))
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid presence payload: {e}")

    try:
        stats = load_stats(kv_get(STATS_KEY))
        stats = heartbeat(stats, update.user_id, now_ms(), update.is_new_visit, update.leave)
        kv_set(STATS_KEY, stats.to_doc())
    except Exception as e:
        logger.exception("Error updating presence")
        raise HTTPException(status_code=500, detail=f"Update presence failed: {e}")
    return {"success": True, **summary(stats)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
