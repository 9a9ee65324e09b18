from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session, select

from medlens.api.deps import get_current_user, require_admin, require_roles
from medlens.api.responses import ok
from medlens.core.clock import utcnow
from medlens.core.config import settings
from medlens.core.database import get_db
from medlens.core.errors import AuthenticationError, ForbiddenError
from medlens.core.rate_limit import limiter
from medlens.core.security import create_access_token, verify_password
from medlens.models import Role, User
from medlens.schemas import (
    AssignDoctorRequest,
    ProfileUpdate,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
)
from medlens.services import hierarchy
from medlens.services.access import policy
from medlens.services.audit import audit

router = APIRouter(prefix="/auth", tags=["auth"])
_LOGIN_LIMIT = f"{settings.rate_limit_login_per_minute}/minute"
_AUTH_LIMIT = f"{settings.rate_limit_per_minute}/minute"
_SENIOR_LISTING_FIELDS = {"id", "first_name", "last_name", "full_name", "email", "specialization", "hospital", "department"}


def _user_out(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.post("/login")
@limiter.limit(_LOGIN_LIMIT)
def login(request: Request, body: UserLogin, db: Session = Depends(get_db)):
    user = db.exec(select(User).where(User.email == body.email)).first()
    if not user or not verify_password(body.password, user.hashed_password):
        audit(db, "failed_login", user.id if user else None, request)
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        audit(db, "failed_login", user.id, request, resource_type="user", resource_id=user.id)
        raise AuthenticationError("Account is deactivated")
    user.last_login_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    token = create_access_token({"sub": str(user.id), "role": Role(user.role).value})
    audit(db, "login", user.id, request)
    return ok(
        {"user": _user_out(user), **Token(access_token=token).model_dump()},
        message="Login successful",
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(_AUTH_LIMIT)
def register(
    request: Request,
    body: UserCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = hierarchy.register_user(db, body)
    audit(db, "register_user", admin.id, request, resource_type="user", resource_id=user.id)
    return ok(_user_out(user), message="User registered successfully")


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return ok(_user_out(user))


@router.put("/me")
def update_me(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = hierarchy.update_user(db, user, UserUpdate(**body.model_dump(exclude_unset=True)), user)
    return ok(_user_out(updated), message="Profile updated successfully")


@router.get("/users")
def list_users(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    users = hierarchy.list_visible_users(db, user)
    return ok([_user_out(u) for u in users], count=len(users))


@router.get("/senior-doctors")
def list_senior_doctors(
    user: User = Depends(require_roles(Role.front_desk_coordinator, Role.admin)),
    db: Session = Depends(get_db),
):
    seniors = hierarchy.list_senior_doctors(db)
    data = [UserResponse.model_validate(s).model_dump(mode="json", include=_SENIOR_LISTING_FIELDS) for s in seniors]
    return ok(data, message=f"Found {len(data)} available senior doctors", count=len(data))


@router.get("/users/{user_id}")
def get_user(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    target = hierarchy.get_user_or_404(db, user_id)
    if not policy.can_access_user(user, target.id):
        raise ForbiddenError("Access denied to this user")
    return ok(_user_out(target))


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    target = hierarchy.get_user_or_404(db, user_id)
    if not policy.can_access_user(user, target.id):
        raise ForbiddenError("Access denied to this user")
    updated = hierarchy.update_user(db, target, body, user)
    return ok(_user_out(updated), message="User updated successfully")


@router.delete("/users/{user_id}")
def delete_user(
    request: Request,
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    hierarchy.delete_user(db, user_id, admin)
    audit(db, "delete_user", admin.id, request, resource_type="user", resource_id=user_id)
    return ok(message="User deleted successfully")


@router.post("/assign-doctor")
def assign_doctor(
    request: Request,
    body: AssignDoctorRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    consulting, senior = hierarchy.assign_consulting_to_senior(db, body.consulting_doctor_id, body.senior_doctor_id)
    audit(db, "assign_consulting_doctor", admin.id, request, resource_type="user", resource_id=consulting.id)
    return ok(
        {"consulting_doctor": _user_out(consulting), "senior_doctor": _user_out(senior)},
        message="Consulting doctor assigned successfully",
    )


@router.get("/hierarchy")
def get_hierarchy(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(hierarchy.get_hierarchy(db, user).model_dump(mode="json"))
