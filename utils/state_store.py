"""Load and persist the whole society state as one document under a fixed key."""
from flask import current_app, g
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import AppState, StateDocument, User


def _storage_key() -> str:
    return current_app.config.get("STATE_STORAGE_KEY", "society_app_data_v4")


def build_super_admin() -> User:
    config = current_app.config
    user = User(
        house_number=config.get("DEFAULT_SUPER_ADMIN_HOUSE", "SA01"),
        phone=config.get("DEFAULT_SUPER_ADMIN_PHONE", "00000000000"),
        role="SUPER_ADMIN",
    )
    user.set_password(config.get("DEFAULT_SUPER_ADMIN_PASSWORD", "123"))
    return user


def seed_state() -> AppState:
    return AppState(users=[build_super_admin()])


def ensure_super_admin(state: AppState) -> bool:
    """Re-seed the super admin account when it is missing. Returns True if added."""
    if any(u.is_super_admin for u in state.users):
        return False
    seed = build_super_admin()
    existing = state.find_user(seed.house_number)
    if existing:
        existing.role = "SUPER_ADMIN"
    else:
        state.users.insert(0, seed)
    current_app.logger.warning("Super admin account re-seeded", extra={"house_number": seed.house_number})
    return True


def load_state() -> AppState:
    record = db.session.get(StateDocument, _storage_key())
    if record is None:
        return seed_state()
    try:
        state = AppState.from_dict(record.payload)
    except (KeyError, TypeError, ValueError, AttributeError):
        current_app.logger.exception("Stored state document is malformed; starting from seed state")
        return seed_state()
    ensure_super_admin(state)
    return state


def save_state(state: AppState) -> None:
    key = _storage_key()
    record = db.session.get(StateDocument, key)
    if record is None:
        record = StateDocument(storage_key=key, payload=state.to_dict())
        db.session.add(record)
    else:
        record.payload = state.to_dict()
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to persist state document")
        raise


def ensure_seed_state() -> None:
    """Write the seed document on first start so the super admin can log in."""
    if db.session.get(StateDocument, _storage_key()) is not None:
        return
    save_state(seed_state())
    current_app.logger.info("State document initialised", extra={"storage_key": _storage_key()})


def request_state() -> AppState:
    """The state aggregate for this request, loaded once and shared by every view helper."""
    if "society_state" not in g:
        g.society_state = load_state()
    return g.society_state


def bind_request_state() -> AppState:
    """Request state with ``current_user`` set from the login session."""
    state = request_state()
    state.current_user = current_user._get_current_object() if current_user.is_authenticated else None
    return state
