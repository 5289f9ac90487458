"""
Conversation storage: chat history and the documents attached to it
"""
import json

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from docuchat import db
from docuchat.errors import BadRequest, Forbidden, NotFound, json_object
from docuchat.models import Conversation, ConversationDocument, Document, Message, MessageRole

conversations_bp = Blueprint('conversations', __name__)

GREETING = 'Hi! How can I help you today?'


def _owned_conversation(conversation_id):
    convo = db.session.get(Conversation, conversation_id)
    if convo is None or convo.user_id != current_user.id:
        raise NotFound()
    return convo


@conversations_bp.route('', methods=['GET'])
@login_required
def list_conversations():
    rows = (
        Conversation.query
        .filter_by(user_id=current_user.id)
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        .all()
    )
    return jsonify({'conversations': [c.to_summary() for c in rows]})


@conversations_bp.route('', methods=['POST'])
@login_required
def create_conversation():
    payload = json_object()
    title = payload.get('title')
    if title is not None and not isinstance(title, str):
        raise BadRequest('title must be a string')
    title = (title or '').strip() or 'New chat'

    convo = Conversation(user_id=current_user.id, title=title[:255])
    # Seed with the assistant greeting the client shows on a new chat
    convo.messages.append(Message(role=MessageRole.ASSISTANT, content=GREETING))
    db.session.add(convo)
    db.session.commit()
    return jsonify({'id': convo.id, 'title': convo.title}), 201


@conversations_bp.route('/<int:conversation_id>', methods=['GET'])
@login_required
def get_conversation(conversation_id):
    convo = _owned_conversation(conversation_id)
    return jsonify({
        'id': convo.id,
        'title': convo.title,
        'messages': [m.to_dict() for m in convo.messages],
        'documentIds': [link.document_id for link in convo.document_links],
    })


@conversations_bp.route('/<int:conversation_id>', methods=['DELETE'])
@login_required
def delete_conversation(conversation_id):
    convo = _owned_conversation(conversation_id)
    db.session.delete(convo)
    db.session.commit()
    current_app.logger.info("conversation:deleted conversation_id=%s", conversation_id)
    return '', 204


@conversations_bp.route('/<int:conversation_id>/messages', methods=['POST'])
@login_required
def add_message(conversation_id):
    convo = _owned_conversation(conversation_id)
    payload = json_object('role and content are required')
    role = payload.get('role')
    content = payload.get('content')
    if not isinstance(role, str) or not isinstance(content, str) or not content:
        raise BadRequest('role and content are required')
    try:
        role = MessageRole(role)
    except ValueError:
        raise BadRequest('role must be "user" or "assistant"')

    attachments = payload.get('attachments')
    msg = Message(
        role=role,
        content=content,
        attachments_json=json.dumps(attachments) if attachments else None,
    )
    convo.messages.append(msg)
    convo.touch()
    db.session.commit()
    return jsonify({'id': msg.id}), 201


@conversations_bp.route('/<int:conversation_id>/documents', methods=['POST'])
@login_required
def link_documents(conversation_id):
    convo = _owned_conversation(conversation_id)
    payload = json_object('documentIds is required')
    document_ids = payload.get('documentIds')
    if not isinstance(document_ids, list) or not all(isinstance(i, int) for i in document_ids):
        raise BadRequest('documentIds is required')

    docs = Document.query.filter(Document.id.in_(document_ids)).all() if document_ids else []
    if any(d.user_id != current_user.id for d in docs):
        raise Forbidden()
    found = {d.id for d in docs}
    missing = [i for i in document_ids if i not in found]
    if missing:
        raise NotFound(f'Unknown document ids: {missing}')

    linked = {link.document_id for link in convo.document_links}
    for document_id in dict.fromkeys(document_ids):
        if document_id not in linked:
            convo.document_links.append(ConversationDocument(document_id=document_id))
    db.session.commit()
    return jsonify({'ok': True}), 200
