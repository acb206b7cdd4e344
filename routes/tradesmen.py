from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from db import get_stores
from errors import NotFoundError
from models.identity import IdentityRef
from models.trade_profile import TradeProfileForm
from routes.auth import get_identities, issue_cookie, require_user
from security import AuthUser
from services.identity import PartitionedIdentityStore
from services.migration import RoleMigration
from stores.base import Stores
from utils import remove_upload, save_profile_image, validate_form

router = APIRouter()


# =========================================================
# 1. Register a trade (customer -> tradesman)
# =========================================================
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_trade_profile(
    response: Response,
    name: str = Form(...),
    phone: str = Form(...),
    skills: list[str] = Form(...),  # repeated field or one comma separated value
    experience: int = Form(...),
    hourly_rate: float = Form(...),
    city: str = Form(...),
    bio: str = Form(...),
    availability: str = Form(...),
    profile_image: UploadFile = File(None),  # optional
    user: AuthUser = Depends(require_user),
    stores: Stores = Depends(get_stores),
    identities: PartitionedIdentityStore = Depends(get_identities),
):
    """
    Turn the caller into a tradesman and create their trade profile.

    The account moves to the tradesmen database under a new id, so the cookie
    is re-issued for the new id and role.
    """
    form = validate_form(
        TradeProfileForm,
        name=name,
        phone=phone,
        skills=skills,
        experience=experience,
        hourly_rate=hourly_rate,
        city=city,
        bio=bio,
        availability=availability,
    )
    if profile_image and profile_image.filename:
        form.profile_image = await save_profile_image(profile_image, IdentityRef.parse(user.id).key)

    try:
        result = await RoleMigration(identities, stores.profiles).register_trade_profile(user.id, form)
    except Exception:
        # No profile points at the picture when registration fails
        remove_upload(form.profile_image)
        raise

    issue_cookie(response, result.account.id, result.account.email, result.account.role)
    return {
        "success": True,
        "message": "Tradesman profile created successfully",
        "data": {
            **result.profile.model_dump(mode="json"),
            "user": result.account.public(),
        },
    }


# =========================================================
# 2. Browse / look up trade profiles
# =========================================================
@router.get("")
async def list_trade_profiles(
    user_id: str | None = None,
    city: str | None = None,
    skill: str | None = None,
    stores: Stores = Depends(get_stores),
):
    """
    ?user_id=...          -> the profile owned by that user (either id representation)
    ?city=...&skill=...   -> search, newest first
    """
    if user_id:
        profile = await stores.profiles.find_by_owner(IdentityRef.parse(user_id).key)
        if not profile:
            raise NotFoundError("Tradesman not found")
        return {"success": True, "data": profile.model_dump(mode="json")}

    profiles = await stores.profiles.search(city=city, skill=skill)
    return {
        "success": True,
        "count": len(profiles),
        "data": [p.model_dump(mode="json") for p in profiles],
    }


@router.get("/{profile_id}")
async def get_trade_profile(profile_id: str, stores: Stores = Depends(get_stores)):
    profile = await stores.profiles.get(profile_id)
    if not profile:
        raise NotFoundError("Tradesman not found")
    return {"success": True, "data": profile.model_dump(mode="json")}
