"""Authentication blueprint: house-number login, resident signup, PIN changes."""
from flask import Blueprint, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField, SubmitField
from wtforms.validators import DataRequired, EqualTo, Length, ValidationError

from utils import auth_service
from utils.auth_service import AuthError
from utils.security import is_safe_redirect_url, normalize_house_number, phone_is_valid, pin_meets_policy
from utils.state_store import bind_request_state, request_state, save_state

auth_bp = Blueprint("auth", __name__)


class LoginForm(FlaskForm):
    house_number = StringField("House ID / Admin ID", validators=[DataRequired(), Length(max=20)])
    password = PasswordField("Security PIN")
    submit = SubmitField("Login")


class RegistrationForm(FlaskForm):
    house_number = StringField("Your House Number", validators=[DataRequired(), Length(max=20)])
    phone = StringField("Phone", validators=[DataRequired()])
    password = PasswordField("Security PIN", validators=[DataRequired()])
    submit = SubmitField("Join")

    def validate_house_number(self, field):
        if request_state().find_user(field.data):
            raise ValidationError("This House is already registered. Please login.")

    def validate_phone(self, field):
        ok, reason = phone_is_valid(field.data, current_app.config.get("PHONE_DIGITS", 11))
        if not ok:
            raise ValidationError(reason)

    def validate_password(self, field):
        ok, reason = pin_meets_policy(field.data, current_app.config.get("MIN_PIN_LENGTH", 3))
        if not ok:
            raise ValidationError("Please set a secure PIN (min 3 chars).")


class ChangePinForm(FlaskForm):
    old_pin = PasswordField("Current PIN", validators=[DataRequired()])
    new_pin = PasswordField("New PIN", validators=[DataRequired()])
    confirm_pin = PasswordField(
        "Confirm", validators=[DataRequired(), EqualTo("new_pin", message="New PINs do not match.")]
    )
    submit = SubmitField("Update PIN")

    def validate_new_pin(self, field):
        ok, reason = pin_meets_policy(field.data, current_app.config.get("MIN_PIN_LENGTH", 3))
        if not ok:
            raise ValidationError(reason)


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))

    form = LoginForm()
    if form.validate_on_submit():
        state = bind_request_state()
        try:
            user = auth_service.login(state, form.house_number.data, form.password.data)
        except AuthError as exc:
            flash(str(exc), "danger")
            return render_template("auth/login.html", form=form, page_title="Login"), 401

        login_user(user, remember=True)
        session.permanent = True
        next_page = request.args.get("next")
        if next_page and is_safe_redirect_url(next_page):
            return redirect(next_page)
        return redirect(url_for("main.dashboard"))

    return render_template("auth/login.html", form=form, page_title="Login")


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))

    form = RegistrationForm()
    if form.validate_on_submit():
        state = bind_request_state()
        try:
            user = auth_service.signup(
                state,
                normalize_house_number(form.house_number.data),
                form.phone.data,
                "RESIDENT",
                form.password.data,
            )
        except AuthError as exc:
            flash(str(exc), "danger")
            return render_template("auth/register.html", form=form, page_title="Join"), 400
        save_state(state)
        login_user(user, remember=True)
        session.permanent = True
        flash(f"Welcome, house {user.house_number}.", "success")
        return redirect(url_for("main.dashboard"))

    return render_template("auth/register.html", form=form, page_title="Join")


@auth_bp.route("/logout")
@login_required
def logout():
    auth_service.logout(bind_request_state())
    logout_user()
    session.clear()
    flash("You have been logged out.", "success")
    return redirect(url_for("auth.login"))


@auth_bp.route("/change-pin", methods=["GET", "POST"])
@login_required
def change_pin():
    form = ChangePinForm()
    if form.validate_on_submit():
        state = bind_request_state()
        try:
            message = auth_service.change_password(state, form.old_pin.data, form.new_pin.data)
        except AuthError as exc:
            form.old_pin.errors.append(str(exc))
            return render_template("auth/change_pin.html", form=form, page_title="Change PIN"), 400
        save_state(state)
        flash(message, "success")
        return redirect(url_for("main.dashboard"))

    return render_template("auth/change_pin.html", form=form, page_title="Change PIN")
