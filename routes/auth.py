from fastapi import APIRouter, Depends, Form, Request, Response, status

from config import COOKIE_NAME, FUZZY_IDENTITY_MATCH
from db import get_stores
from errors import UnauthenticatedError
from models.identity import IdentityRef
from security import AuthUser, clear_auth_cookie, create_token, decode_token, set_auth_cookie
from services.accounts import AccountService, RegistrationForm
from services.identity import PartitionedIdentityStore
from services.resolver import CrossPartitionResolver
from stores.base import Stores
from utils import validate_form

# --- 1. Router ---
router = APIRouter()


# --- 2. Core dependencies: who is calling, and the identity services ---

async def get_current_user(request: Request) -> AuthUser | None:
    """
    Read the JWT cookie and return the caller, or None when not logged in.

    The token carries id / email / role; an expired or tampered token is
    treated the same as no token at all.
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    return decode_token(token)


async def require_user(user: AuthUser | None = Depends(get_current_user)) -> AuthUser:
    """Same as get_current_user, but anonymous callers get a 401."""
    if user is None:
        raise UnauthenticatedError()
    return user


def get_identities(stores: Stores = Depends(get_stores)) -> PartitionedIdentityStore:
    return PartitionedIdentityStore(tradesmen=stores.tradesmen, customers=stores.customers)


def get_resolver(
    stores: Stores = Depends(get_stores),
    identities: PartitionedIdentityStore = Depends(get_identities),
) -> CrossPartitionResolver:
    # FastAPI caches dependencies per request, so one resolver (and one cache) per request
    return CrossPartitionResolver(identities, stores.profiles, fuzzy_match=FUZZY_IDENTITY_MATCH)


def issue_cookie(response: Response, user_id: str, email: str, role) -> None:
    set_auth_cookie(response, create_token(user_id, email, role))


# --- 3. Register ---

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def handle_registration(
    response: Response,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    phone: str = Form(...),
    role: str = Form("customer"),
    city: str = Form(""),
    identities: PartitionedIdentityStore = Depends(get_identities),
):
    """
    Create an account in the partition that matches the role and log the new
    user in straight away (cookie set on the response).
    """
    form = validate_form(RegistrationForm, name=name, email=email, password=password, phone=phone, role=role, city=city)
    account = await AccountService(identities).register(form)

    issue_cookie(response, account.id, account.email, account.role)
    return {
        "success": True,
        "message": "User registered successfully",
        "user": account.public(),
    }


# --- 4. Login / logout ---

@router.post("/login")
async def handle_login(
    response: Response,
    email: str = Form(...),
    password: str = Form(...),
    identities: PartitionedIdentityStore = Depends(get_identities),
):
    account = await AccountService(identities).authenticate(email, password)

    issue_cookie(response, account.id, account.email, account.role)
    return {"success": True, "message": "Logged in", "user": account.public()}


@router.post("/logout")
async def handle_logout(response: Response):
    clear_auth_cookie(response)
    return {"success": True, "message": "Logged out"}


# --- 5. Who am I ---

@router.get("/me")
async def get_me(
    user: AuthUser = Depends(require_user),
    resolver: CrossPartitionResolver = Depends(get_resolver),
):
    identity = await resolver.display(IdentityRef.parse(user.id, user.role))
    return {"success": True, "data": identity.model_dump(mode="json")}
