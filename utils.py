import os
import re
import uuid
from datetime import datetime, timezone

import aiofiles  # async file writes so a large upload does not block other requests
from fastapi import UploadFile
from pydantic import BaseModel, ValidationError

from config import UPLOAD_ROOT
from errors import InvalidArgumentError

# --- 1. Upload folders ---
FOLDER_PROFILES = "profiles"  # trade profile pictures
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}


def setup_upload_directories():
    """
    Make sure the upload folders exist.
    Called at startup; exist_ok=True skips folders that are already there.
    """
    os.makedirs(os.path.join(UPLOAD_ROOT, FOLDER_PROFILES), exist_ok=True)


async def save_profile_image(file: UploadFile, owner_ref: str) -> str:
    """
    Store a trade profile picture under uploads/profiles/.

    The file name carries the owner reference, a timestamp and a random
    suffix so repeated uploads never overwrite each other.

    Returns the relative path that is saved on the profile, e.g.
    uploads/profiles/profile_<id>_20240101120000_<hex>.jpg
    """
    ext = os.path.splitext(file.filename or "")[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise InvalidArgumentError("Profile image must be a JPG, PNG or WEBP file")

    target_dir = os.path.join(UPLOAD_ROOT, FOLDER_PROFILES)
    os.makedirs(target_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    safe_owner = re.sub(r"[^A-Za-z0-9_-]", "_", owner_ref)
    new_filename = f"profile_{safe_owner}_{timestamp}_{uuid.uuid4().hex[:8]}{ext}"
    file_path = os.path.join(target_dir, new_filename)

    # Chunked write: 1 KB at a time
    async with aiofiles.open(file_path, "wb") as out_file:
        while content := await file.read(1024):
            await out_file.write(content)

    # "/" separators regardless of OS
    return f"{UPLOAD_ROOT}/{FOLDER_PROFILES}/{new_filename}"


def remove_upload(path: str | None):
    """Delete a stored upload that ended up unused. Missing files are ignored."""
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        print(f"WARNING: could not remove unused upload {path}: {e}")


# Request parts FastAPI puts in front of the field name in "loc"
_REQUEST_SOURCES = {"body", "query", "path", "header", "cookie"}


def describe_validation_error(errors) -> str:
    """One readable line for the first pydantic / FastAPI validation error."""
    if not errors:
        return "Invalid request"
    error = errors[0]
    loc = list(error.get("loc", ()))
    if len(loc) > 1 and loc[0] in _REQUEST_SOURCES:
        loc = loc[1:]
    field = ".".join(str(part) for part in loc) or "input"
    return f"Invalid {field}: {error.get('msg', 'invalid value')}"


def validate_form(model: type[BaseModel], **data) -> BaseModel:
    """Build a pydantic form model, reporting the first problem as InvalidArgument."""
    try:
        return model(**data)
    except ValidationError as e:
        raise InvalidArgumentError(describe_validation_error(e.errors())) from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())
