"""Session operations on the society user list: login, signup, PIN changes, roles."""
from flask import current_app

from models import USER_ROLES, AppState, User
from utils.security import normalize_house_number


class AuthError(Exception):
    """Base class for credential and account errors shown on forms."""


class UserNotFoundError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class DuplicateHouseError(AuthError):
    pass


class RoleChangeError(AuthError):
    pass


def login(state: AppState, house_number: str, password: str | None) -> User:
    house = normalize_house_number(house_number)
    user = state.find_user(house)
    if not user:
        raise UserNotFoundError("User not found.")
    if not user.check_password(password):
        current_app.logger.info("Login rejected", extra={"house_number": house})
        raise InvalidCredentialsError("Invalid Credentials.")
    state.current_user = user
    current_app.logger.info("User logged in", extra={"house_number": house, "role": user.role})
    return user


def signup(state: AppState, house_number: str, phone: str, role: str = "RESIDENT", password: str | None = None) -> User:
    house = normalize_house_number(house_number)
    if not house:
        raise AuthError("House number is required.")
    if state.find_user(house):
        raise DuplicateHouseError("This House is already registered. Please login.")
    if role not in USER_ROLES:
        raise AuthError(f"Unknown role: {role}")
    user = User(house_number=house, phone=(phone or "").strip(), role=role)
    user.set_password(password)
    state.users.append(user)
    state.current_user = user
    current_app.logger.info("User registered", extra={"house_number": house, "role": role})
    return user


def logout(state: AppState) -> None:
    state.current_user = None


def change_password(state: AppState, old_pin: str, new_pin: str) -> str:
    user = state.current_user
    if not user:
        raise AuthError("Not logged in")
    if not user.check_password(old_pin):
        raise InvalidCredentialsError("Old PIN is incorrect.")
    user.set_password(new_pin)
    current_app.logger.info("PIN changed", extra={"house_number": user.house_number})
    return "PIN changed successfully."


def reset_password(state: AppState, house_number: str, new_pin: str | None = None) -> str:
    target = normalize_house_number(house_number)
    user = state.find_user(target)
    if not user:
        raise UserNotFoundError(f"User {target} not found.")
    user.set_password(new_pin or current_app.config.get("DEFAULT_RESET_PIN", "1234"))
    current_app.logger.info("PIN reset", extra={"house_number": target})
    return f"Password for {target} has been reset."


def update_user_role(state: AppState, house_number: str, role: str) -> User:
    target = normalize_house_number(house_number)
    user = state.find_user(target)
    if not user:
        raise UserNotFoundError(f"User {target} not found.")
    if role not in ("RESIDENT", "ADMIN"):
        raise RoleChangeError("Only Resident and Admin roles can be assigned.")
    if user.is_super_admin:
        raise RoleChangeError("The super admin role cannot be changed.")
    user.role = role
    current_app.logger.info("Role updated", extra={"house_number": target, "role": role})
    return user


def toggle_admin(state: AppState, house_number: str) -> User:
    user = state.find_user(house_number)
    if not user:
        raise UserNotFoundError(f"User {normalize_house_number(house_number)} not found.")
    return update_user_role(state, user.house_number, "RESIDENT" if user.is_admin else "ADMIN")
