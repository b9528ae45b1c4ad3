"""Community hub: notice board and messenger."""
from flask import Blueprint, abort, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import HiddenField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length

from models import NOTICE_TYPES
from utils import community
from utils.community import CommunityError
from utils.decorators import roles_required
from utils.state_store import bind_request_state, save_state

community_bp = Blueprint("community", __name__, url_prefix="/community")


class NoticeForm(FlaskForm):
    title = StringField("Subject Line", validators=[DataRequired(), Length(max=200)])
    content = TextAreaField("Announcement", validators=[DataRequired(), Length(max=5000)])
    notice_type = SelectField("Type", choices=[(t, t.title()) for t in NOTICE_TYPES], default="INFO")
    submit = SubmitField("Publish")


class DeleteNoticeForm(FlaskForm):
    submit = SubmitField("Delete")


class ChatForm(FlaskForm):
    content = StringField("Message", validators=[DataRequired(), Length(max=2000)])
    recipient = HiddenField()
    submit = SubmitField("Send")


@community_bp.route("/")
@login_required
def index():
    return redirect(url_for("community.notices"))


@community_bp.route("/notices", methods=["GET", "POST"])
@login_required
def notices():
    state = bind_request_state()
    form = NoticeForm()
    can_manage = community.can_manage_notices(current_user)
    if request.method == "POST":
        if not can_manage:
            abort(403)
        if form.validate_on_submit():
            try:
                community.post_notice(state, current_user, form.title.data, form.content.data, form.notice_type.data)
            except CommunityError as exc:
                flash(str(exc), "danger")
            else:
                save_state(state)
                flash("Notice published.", "success")
                return redirect(url_for("community.notices"))

    return render_template(
        "community/notices.html",
        notices=state.notices,
        form=form,
        delete_form=DeleteNoticeForm(),
        can_manage=can_manage,
        page_title="Notice Board",
    )


@community_bp.route("/notices/<string:notice_id>/delete", methods=["POST"])
@roles_required("ADMIN", "SUPER_ADMIN")
def delete_notice(notice_id):
    form = DeleteNoticeForm()
    if form.validate_on_submit():
        state = bind_request_state()
        try:
            community.delete_notice(state, notice_id)
        except CommunityError as exc:
            flash(str(exc), "warning")
        else:
            save_state(state)
            flash("Notice deleted.", "success")
    return redirect(url_for("community.notices"))


@community_bp.route("/chat", methods=["GET", "POST"])
@login_required
def chat():
    state = bind_request_state()
    peer = (request.args.get("with") or "").strip().upper() or None
    if peer and (not state.find_user(peer) or peer == current_user.house_number):
        abort(404)

    form = ChatForm(recipient=peer or "")
    if form.validate_on_submit():
        recipient = (form.recipient.data or "").strip().upper() or None
        try:
            community.post_message(
                state,
                current_user,
                form.content.data,
                "DIRECT" if recipient else "GROUP",
                recipient,
            )
        except CommunityError as exc:
            flash(str(exc), "danger")
        else:
            save_state(state)
            return redirect(url_for("community.chat", **({"with": recipient} if recipient else {})))

    return render_template(
        "community/chat.html",
        messages=community.conversation(state, current_user.house_number, peer),
        contacts=community.contacts(state, current_user),
        peer=peer,
        form=form,
        page_title="Messenger",
    )
