from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from safari_ops.auth import create_access_token, require_permission, verify_password, get_current_user
from safari_ops.database import get_db
from safari_ops.exceptions import DuplicateEmail
from safari_ops.models import User
from safari_ops.permissions import menu_for_role
from safari_ops.schemas import (
    ChangePasswordRequest, LoginRequest, MenuOut, UserCreate, UserOut, UserUpdate,
)
from safari_ops.services import user_service
from safari_ops.services.audit_service import log_action

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = user_service.find_by_email(db, data.email)
    if not user or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    token = create_access_token({"sub": user.id, "role": user.role})
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        samesite="lax",
        max_age=60 * 480,
    )
    log_action(db, user, "login", "user", user.id)
    db.commit()
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": UserOut.model_validate(user).model_dump(mode="json"),
        "menu": menu_for_role(user.role),
    }


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("access_token")
    return {"message": "Logged out"}


@router.put("/change-password")
def change_password(
    data: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        user_service.change_password(user, data.old_password, data.new_password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    log_action(db, user, "change_password", "user", user.id, "User changed their own password")
    db.commit()
    return {"message": "Password changed successfully"}


@router.get("/me", response_model=UserOut)
def get_me(user: User = Depends(get_current_user)):
    return user


@router.get("/menu", response_model=MenuOut)
def get_menu(user: User = Depends(get_current_user)):
    return MenuOut(role=user.role, permissions=menu_for_role(user.role))


# --- User management ---

@router.get("/users", response_model=list[UserOut])
def list_users(
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("users")),
):
    return db.query(User).order_by(User.email).all()


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_permission("users")),
):
    try:
        user = user_service.create_user(db, data.email, data.name, data.password, data.role)
    except DuplicateEmail as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    log_action(db, admin, "create", "user", user.id, f"Created user '{user.email}' with role '{user.role}'")
    db.commit()
    db.refresh(user)
    return user


@router.put("/users/{user_id}", response_model=UserOut)
def update_user(
    user_id: str,
    data: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_permission("users")),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        changes = user_service.update_user(user, data.name, data.role, data.is_active, data.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    log_action(db, admin, "update", "user", user.id, f"Updated user '{user.email}': {', '.join(changes)}")
    db.commit()
    db.refresh(user)
    return user
