"""Blueprint registration, role dashboards, and super admin user management."""
from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import PasswordField, SubmitField
from wtforms.validators import DataRequired, EqualTo

from models import QUERY_STATUSES
from utils import auth_service, oversight, query_engine
from utils.auth_service import AuthError
from utils.decorators import roles_required
from utils.security import pin_meets_policy
from utils.state_store import bind_request_state, save_state
from .auth import auth_bp
from .community import community_bp
from .queries import queries_bp

main_bp = Blueprint("main", __name__)


class ToggleRoleForm(FlaskForm):
    submit = SubmitField("Toggle Admin")


class ResetPinForm(FlaskForm):
    new_pin = PasswordField("New PIN", validators=[DataRequired()])
    confirm_pin = PasswordField(
        "Confirm PIN", validators=[DataRequired(), EqualTo("new_pin", message="Passwords do not match.")]
    )
    submit = SubmitField("Reset PIN")


@main_bp.route("/")
@login_required
def dashboard():
    state = bind_request_state()
    if current_user.is_super_admin:
        return render_template(
            "dashboard/super_admin.html",
            stats=oversight.dashboard_stats(state),
            users=oversight.managed_users(state),
            conversations=oversight.conversation_pairs(state),
            queries=state.queries,
            toggle_form=ToggleRoleForm(),
            reset_form=ResetPinForm(),
            page_title="Administrator Hub",
        )

    if current_user.is_admin:
        status_filter = request.args.get("status") or None
        if status_filter not in QUERY_STATUSES:
            status_filter = None
        return render_template(
            "dashboard/admin.html",
            queries=query_engine.queries_for_viewer(state, current_user, status_filter),
            status_filter=status_filter,
            status_options=QUERY_STATUSES,
            page_title="Admin Dashboard",
        )

    return render_template(
        "dashboard/resident.html",
        queries=query_engine.queries_for_viewer(state, current_user),
        page_title="My Queries",
    )


@main_bp.route("/admin/users/<string:house_number>/toggle-role", methods=["POST"])
@roles_required("SUPER_ADMIN")
def toggle_role(house_number):
    form = ToggleRoleForm()
    if form.validate_on_submit():
        state = bind_request_state()
        try:
            user = auth_service.toggle_admin(state, house_number)
        except AuthError as exc:
            flash(str(exc), "danger")
        else:
            save_state(state)
            flash(f"House {user.house_number} is now {user.role.replace('_', ' ').title()}.", "success")
    return redirect(url_for("main.dashboard"))


@main_bp.route("/admin/users/<string:house_number>/reset-pin", methods=["POST"])
@roles_required("SUPER_ADMIN")
def reset_pin(house_number):
    form = ResetPinForm()
    if not form.validate_on_submit():
        errors = form.confirm_pin.errors or form.new_pin.errors or ["PIN must be at least 3 characters."]
        flash(errors[0], "danger")
        return redirect(url_for("main.dashboard"))

    ok, reason = pin_meets_policy(form.new_pin.data, current_app.config.get("MIN_PIN_LENGTH", 3))
    if not ok:
        flash(reason, "danger")
        return redirect(url_for("main.dashboard"))

    state = bind_request_state()
    try:
        message = auth_service.reset_password(state, house_number, form.new_pin.data)
    except AuthError as exc:
        flash(str(exc), "danger")
    else:
        save_state(state)
        flash(message, "success")
    return redirect(url_for("main.dashboard"))


__all__ = ["main_bp", "auth_bp", "queries_bp", "community_bp"]
