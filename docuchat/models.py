"""
Database Models

Key Models:
- User: account owning documents and conversations
- Document: uploaded file plus its extracted text (immutable once created)
- Conversation / Message: chat history
- ConversationDocument: documents attached to a conversation
"""
from datetime import datetime, timezone
import enum
import json

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from docuchat import db


def _utcnow():
    return datetime.now(timezone.utc)


class MessageRole(enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    documents = db.relationship('Document', back_populates='user', lazy='dynamic')
    conversations = db.relationship('Conversation', back_populates='user', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Document(db.Model):
    """
    Uploaded document and its extracted text.

    Rows are only created after a successful extraction and are never
    updated afterwards. `storage_path` is the public relative URL of the
    stored file (/uploads/<basename>).
    """
    __tablename__ = 'documents'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    original_filename = db.Column(db.String(512), nullable=False)
    mime_type = db.Column(db.String(255), nullable=False)
    size_bytes = db.Column(db.BigInteger, nullable=False)
    storage_path = db.Column(db.String(1024), nullable=False)
    text_content = db.Column(db.Text, nullable=False)
    checksum = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    user = db.relationship('User', back_populates='documents')

    def to_dict(self):
        """Metadata only; the extracted text is never sent back."""
        return {
            'id': self.id,
            'original_filename': self.original_filename,
            'size_bytes': self.size_bytes,
            'mime_type': self.mime_type,
            'url': self.storage_path,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Conversation(db.Model):
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False, default='New chat')
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    user = db.relationship('User', back_populates='conversations')
    messages = db.relationship(
        'Message', back_populates='conversation', order_by='Message.id',
        cascade='all, delete-orphan', lazy='select',
    )
    document_links = db.relationship(
        'ConversationDocument', cascade='all, delete-orphan', lazy='select',
    )

    def touch(self):
        self.updated_at = _utcnow()

    def to_summary(self):
        return {
            'id': self.id,
            'title': self.title,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey('conversations.id'), nullable=False, index=True)
    role = db.Column(db.Enum(MessageRole), nullable=False)
    content = db.Column(db.Text, nullable=False)
    attachments_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    conversation = db.relationship('Conversation', back_populates='messages')

    def to_dict(self):
        result = {
            'id': self.id,
            'role': self.role.value,
            'content': self.content,
        }
        if self.attachments_json:
            result['attachments'] = json.loads(self.attachments_json)
        return result


class ConversationDocument(db.Model):
    __tablename__ = 'conversation_documents'

    conversation_id = db.Column(db.Integer, db.ForeignKey('conversations.id'), primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey('documents.id'), primary_key=True, index=True)
