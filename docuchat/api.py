"""
API Blueprint - document upload, metadata and question answering

Upload flow: received -> validated -> stored -> extracting ->
persisted | rejected. Rejected uploads are removed from disk and no
Document row is written.
"""
import os
import time

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from docuchat import db
from docuchat.config import PipelineConfig
from docuchat.errors import BadRequest, ExtractionError, NotFound, json_object
from docuchat.models import Document
from docuchat.services import extraction_service, llm_service, storage_service

api_bp = Blueprint('api', __name__)


def pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_mapping(current_app.config)


def _owned_document(document_id: int) -> Document:
    doc = db.session.get(Document, document_id)
    if doc is None or doc.user_id != current_user.id:
        raise NotFound()
    return doc


@api_bp.route("/api/documents/upload", methods=["POST"])
@login_required
def upload_document():
    log = current_app.logger
    file = request.files.get("file")
    if file is None or not file.filename:
        raise BadRequest("No file uploaded")

    settings = pipeline_config()
    started = time.monotonic()
    log.info("upload:start filename=%s mime=%s", file.filename, file.mimetype)

    stored = storage_service.save_upload(file, settings)
    try:
        text = extraction_service.extract_document_text(stored.path, stored.mime_type, settings)
    except ExtractionError as e:
        log.warning(
            "extract:failed filename=%s mime=%s error=%s duration_ms=%d",
            stored.original_filename, stored.mime_type, e.message, (time.monotonic() - started) * 1000,
        )
        storage_service.remove_upload(stored.path)
        raise
    except Exception:
        storage_service.remove_upload(stored.path)
        log.exception("extract:crashed filename=%s mime=%s", stored.original_filename, stored.mime_type)
        raise

    doc = Document(
        user_id=current_user.id,
        original_filename=stored.original_filename,
        mime_type=stored.mime_type,
        size_bytes=stored.size_bytes,
        storage_path=storage_service.public_url(stored.path),
        text_content=text,
        checksum=stored.checksum,
    )
    try:
        db.session.add(doc)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        storage_service.remove_upload(stored.path)
        log.exception("db:document:create:failed filename=%s", stored.original_filename)
        raise

    log.info(
        "upload:done document_id=%s filename=%s chars=%d duration_ms=%d",
        doc.id, stored.original_filename, len(text), (time.monotonic() - started) * 1000,
    )
    return jsonify({"ok": True, "id": doc.id, "url": doc.storage_path}), 201


@api_bp.route("/api/documents/<int:document_id>", methods=["GET"])
@login_required
def get_document(document_id):
    doc = _owned_document(document_id)
    return jsonify(doc.to_dict()), 200


@api_bp.route("/api/documents/<int:document_id>/ask", methods=["POST"])
@login_required
def ask_question(document_id):
    payload = json_object("Question is required")
    question = payload.get("question")
    if not isinstance(question, str) or not question.strip():
        raise BadRequest("Question is required")

    doc = _owned_document(document_id)
    answer = llm_service.answer_question(doc.text_content, question, pipeline_config())
    return jsonify({"ok": True, "answer": answer}), 200


@api_bp.route("/api/documents/chat", methods=["POST"])
@login_required
def chat():
    """Pass a full message list straight through to the LLM."""
    payload = json_object("Messages array is required")
    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        raise BadRequest("Messages array is required")

    model = payload.get("model") or None
    response = llm_service.complete(messages, pipeline_config(), model=model)
    return jsonify({"ok": True, "response": response}), 200


@api_bp.route("/uploads/<path:name>", methods=["GET"])
@login_required
def download_upload(name):
    url = storage_service.public_url(name)
    doc = Document.query.filter_by(storage_path=url, user_id=current_user.id).first()
    if doc is None:
        raise NotFound()
    settings = pipeline_config()
    return send_from_directory(
        os.path.abspath(settings.upload_dir), os.path.basename(name),
        mimetype=doc.mime_type, download_name=doc.original_filename,
    )
