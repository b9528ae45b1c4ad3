"""Query intake, detail view, admin triage actions, and audited resolution."""
from flask import Blueprint, abort, current_app, flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import HiddenField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length

from utils import query_engine
from utils.ai_auditor import AIServiceError, best_effort_transcript, transcribe_audio
from utils.decorators import roles_required
from utils.media_utils import (
    ALLOWED_IMAGE_EXTENSIONS,
    MediaValidationError,
    audio_upload_to_data_uri,
    image_upload_to_data_uri,
    validate_audio_file,
)
from utils.query_engine import QueryError, QueryNotFoundError
from utils.state_store import bind_request_state, save_state

queries_bp = Blueprint("queries", __name__, url_prefix="/queries")


class QueryForm(FlaskForm):
    description = TextAreaField("Describe the issue", validators=[Length(max=3000)])
    image = FileField(
        "Photo (jpg, png, webp)",
        validators=[FileAllowed(list(ALLOWED_IMAGE_EXTENSIONS), "Images only")],
    )
    voice_note = FileField("Voice note")
    voice_transcript = HiddenField()
    submit = SubmitField("Submit Query")


class ActionForm(FlaskForm):
    submit = SubmitField("On It (Fixing)")


class BigIssueForm(FlaskForm):
    eta = StringField("Estimated timeline", validators=[DataRequired(), Length(max=120)])
    submit = SubmitField("Confirm Big Issue")


class ResolveForm(FlaskForm):
    text = TextAreaField("Resolution note", validators=[DataRequired(), Length(max=3000)])
    image = FileField(
        "Photo of the fix",
        validators=[FileAllowed(list(ALLOWED_IMAGE_EXTENSIONS), "Images only")],
    )
    voice_note = FileField("Voice summary")
    transcript = HiddenField()
    submit = SubmitField("Confirm Resolution")


def _max_image_bytes() -> int:
    return int(current_app.config.get("MAX_IMAGE_UPLOAD_BYTES", 8 * 1024 * 1024))


def _max_audio_bytes() -> int:
    return int(current_app.config.get("MAX_AUDIO_UPLOAD_BYTES", 10 * 1024 * 1024))


def _query_or_404(state, query_id):
    try:
        query = query_engine.get_query(state, query_id)
    except QueryNotFoundError:
        abort(404)
    if not query_engine.can_view(query, current_user):
        abort(403)
    return query


@queries_bp.route("/new", methods=["GET", "POST"])
@roles_required("RESIDENT")
def new_query():
    form = QueryForm()
    if form.validate_on_submit():
        state = bind_request_state()
        try:
            image = image_upload_to_data_uri(form.image.data, max_bytes=_max_image_bytes())
            voice_mail = audio_upload_to_data_uri(form.voice_note.data, max_bytes=_max_audio_bytes())
            transcript = (form.voice_transcript.data or "").strip() or best_effort_transcript(voice_mail)
            description = (form.description.data or "").strip()
            if transcript and not description:
                description = transcript
            query = query_engine.create_query(
                state,
                current_user.house_number,
                description=description,
                image=image,
                voice_mail=voice_mail,
                voice_transcript=transcript,
            )
        except (MediaValidationError, QueryError) as exc:
            flash(str(exc), "danger")
            return render_template("queries/new.html", form=form, page_title="Lodge Complaint"), 400
        save_state(state)
        flash("Query submitted successfully.", "success")
        return redirect(url_for("queries.view_query", query_id=query.id))

    return render_template("queries/new.html", form=form, page_title="Lodge Complaint")


@queries_bp.route("/<string:query_id>", methods=["GET"])
@login_required
def view_query(query_id):
    state = bind_request_state()
    query = _query_or_404(state, query_id)
    if query_engine.record_view(state, query.id, current_user):
        save_state(state)

    return render_template(
        "queries/detail.html",
        query=query,
        actions=query_engine.available_actions(query, current_user),
        hide_original=query_engine.hides_original(query),
        audit_failed=query_engine.audit_failed(query),
        action_form=ActionForm(),
        big_issue_form=BigIssueForm(),
        resolve_form=ResolveForm(),
        page_title=f"Query {query.id}",
    )


@queries_bp.route("/<string:query_id>/on-it", methods=["POST"])
@roles_required("ADMIN")
def on_it(query_id):
    form = ActionForm()
    if form.validate_on_submit():
        state = bind_request_state()
        _query_or_404(state, query_id)
        try:
            query_engine.mark_on_it(state, query_id)
        except QueryError as exc:
            flash(str(exc), "warning")
        else:
            save_state(state)
            flash("Status updated: On It.", "success")
    return redirect(url_for("queries.view_query", query_id=query_id))


@queries_bp.route("/<string:query_id>/big-issue", methods=["POST"])
@roles_required("ADMIN")
def big_issue(query_id):
    form = BigIssueForm()
    state = bind_request_state()
    _query_or_404(state, query_id)
    if not form.validate_on_submit():
        flash("Please give an estimated timeline for the big issue.", "warning")
        return redirect(url_for("queries.view_query", query_id=query_id))
    try:
        query_engine.mark_big_issue(state, query_id, form.eta.data)
    except QueryError as exc:
        flash(str(exc), "warning")
    else:
        save_state(state)
        flash("Query marked as a big issue.", "success")
    return redirect(url_for("queries.view_query", query_id=query_id))


@queries_bp.route("/<string:query_id>/resolve", methods=["POST"])
@roles_required("ADMIN")
def resolve(query_id):
    form = ResolveForm()
    state = bind_request_state()
    _query_or_404(state, query_id)
    if not form.validate_on_submit():
        flash("Admin Resolution requires: 1. Fixed Photo, 2. Voice Summary, and 3. Written Note.", "warning")
        return redirect(url_for("queries.view_query", query_id=query_id))

    try:
        image = image_upload_to_data_uri(form.image.data, max_bytes=_max_image_bytes())
        voice_mail = audio_upload_to_data_uri(form.voice_note.data, max_bytes=_max_audio_bytes())
        transcript = (form.transcript.data or "").strip() or best_effort_transcript(voice_mail)
        query = query_engine.resolve_query(
            state,
            query_id,
            text=form.text.data,
            image=image,
            voice_mail=voice_mail,
            transcript=transcript,
        )
    except (MediaValidationError, QueryError) as exc:
        flash(str(exc), "warning")
        return redirect(url_for("queries.view_query", query_id=query_id))

    save_state(state)
    verification = query.solution.ai_verification if query.solution else None
    if query_engine.audit_failed(query):
        flash("AI detected discrepancies. Please check the audit report.", "danger")
    elif verification and verification.requires_manual_review:
        flash("Resolved. The AI audit was unavailable, so this resolution needs a manual check.", "info")
    else:
        flash("Query resolved.", "success")
    return redirect(url_for("queries.view_query", query_id=query_id))


@queries_bp.route("/api/transcribe", methods=["POST"])
@login_required
def transcribe():
    """Preview a voice-note transcript for the submission forms."""
    upload = request.files.get("audio")
    try:
        audio_bytes, mime_type = validate_audio_file(upload, max_bytes=_max_audio_bytes())
    except MediaValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    try:
        transcript = transcribe_audio(audio_bytes, mime_type)
    except AIServiceError as exc:
        current_app.logger.warning("Transcription preview failed", extra={"error": str(exc)})
        transcript = None
    return jsonify({"transcript": transcript})
