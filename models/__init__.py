"""Society state aggregate, its JSON document form, and the table that stores it."""
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_id() -> str:
	return uuid.uuid4().hex[:12]


def now_ms() -> int:
	return int(time.time() * 1000)


USER_ROLES: tuple[str, ...] = (
	"RESIDENT",
	"ADMIN",
	"SUPER_ADMIN",
)

QUERY_STATUSES: tuple[str, ...] = (
	"NEW",
	"UNDER_REVIEW",
	"UNDER_PROCESS",
	"BIG_ISSUE",
	"RESOLVED",
)

ACTIVE_QUERY_STATUSES: tuple[str, ...] = (
	"NEW",
	"UNDER_REVIEW",
	"UNDER_PROCESS",
	"BIG_ISSUE",
)

NOTICE_TYPES: tuple[str, ...] = (
	"INFO",
	"ALERT",
	"EVENT",
)

MESSAGE_TYPES: tuple[str, ...] = (
	"GROUP",
	"DIRECT",
)

# Badge class and short label per status, shared by every view.
QUERY_STATUS_BADGES: dict[str, tuple[str, str]] = {
	"NEW": ("primary", "NEW"),
	"UNDER_REVIEW": ("warning", "REVIEW"),
	"UNDER_PROCESS": ("orange", "FIXING"),
	"BIG_ISSUE": ("purple", "BIG ISSUE"),
	"RESOLVED": ("success", "RESOLVED"),
}

NOTICE_TYPE_BADGES: dict[str, str] = {
	"INFO": "info",
	"ALERT": "danger",
	"EVENT": "success",
}


@dataclass(eq=False)
class User(UserMixin):
	house_number: str
	phone: str
	role: str = "RESIDENT"
	password_hash: str | None = None

	def set_password(self, password: str | None) -> None:
		if not password:
			self.password_hash = None
			return
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str | None) -> bool:
		# Accounts created without a PIN accept any password.
		if not self.password_hash:
			return True
		return check_password_hash(self.password_hash, password or "")

	@property
	def is_admin(self) -> bool:
		return self.role == "ADMIN"

	@property
	def is_super_admin(self) -> bool:
		return self.role == "SUPER_ADMIN"

	@property
	def is_resident(self) -> bool:
		return self.role == "RESIDENT"

	def get_id(self) -> str:  # Flask-Login identity is the house number
		return self.house_number

	def to_dict(self) -> dict:
		return {
			"houseNumber": self.house_number,
			"phone": self.phone,
			"role": self.role,
			"passwordHash": self.password_hash,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "User":
		role = data.get("role") or "RESIDENT"
		if role not in USER_ROLES:
			raise ValueError(f"Unknown role: {role}")
		return cls(
			house_number=str(data["houseNumber"]).strip().upper(),
			phone=str(data.get("phone") or ""),
			role=role,
			password_hash=data.get("passwordHash") or None,
		)


@dataclass
class StatusUpdate:
	status: str
	timestamp: int
	message: str
	timeline: str | None = None

	def to_dict(self) -> dict:
		payload = {"status": self.status, "timestamp": self.timestamp, "message": self.message}
		if self.timeline:
			payload["timeline"] = self.timeline
		return payload

	@classmethod
	def from_dict(cls, data: dict) -> "StatusUpdate":
		status = data["status"]
		if status not in QUERY_STATUSES:
			raise ValueError(f"Unknown query status: {status}")
		return cls(
			status=status,
			timestamp=int(data["timestamp"]),
			message=str(data.get("message") or ""),
			timeline=data.get("timeline") or None,
		)


@dataclass
class AIVerification:
	is_resolved: bool
	reason: str
	requires_manual_review: bool = False

	def to_dict(self) -> dict:
		return {
			"isResolved": self.is_resolved,
			"reason": self.reason,
			"requiresManualReview": self.requires_manual_review,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "AIVerification":
		return cls(
			is_resolved=bool(data["isResolved"]),
			reason=str(data.get("reason") or ""),
			requires_manual_review=bool(data.get("requiresManualReview", False)),
		)


@dataclass
class Solution:
	text: str
	image: str | None = None
	voice_mail: str | None = None
	resolution_transcript: str | None = None
	ai_verification: AIVerification | None = None

	def to_dict(self) -> dict:
		return {
			"text": self.text,
			"image": self.image,
			"voiceMail": self.voice_mail,
			"resolutionTranscript": self.resolution_transcript,
			"aiVerification": self.ai_verification.to_dict() if self.ai_verification else None,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "Solution":
		verification = data.get("aiVerification")
		return cls(
			text=str(data["text"]),
			image=data.get("image") or None,
			voice_mail=data.get("voiceMail") or None,
			resolution_transcript=data.get("resolutionTranscript") or None,
			ai_verification=AIVerification.from_dict(verification) if verification else None,
		)


@dataclass
class Query:
	id: str
	resident_house_number: str
	status: str
	created_at: int
	timeline: list[StatusUpdate] = field(default_factory=list)
	description: str | None = None
	image: str | None = None
	voice_mail: str | None = None
	voice_transcript: str | None = None
	solution: Solution | None = None

	@property
	def is_resolved(self) -> bool:
		return self.status == "RESOLVED"

	@property
	def summary(self) -> str:
		return self.description or "Issue report with attachments"

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"residentHouseNumber": self.resident_house_number,
			"description": self.description,
			"image": self.image,
			"voiceMail": self.voice_mail,
			"voiceTranscript": self.voice_transcript,
			"status": self.status,
			"createdAt": self.created_at,
			"timeline": [update.to_dict() for update in self.timeline],
			"solution": self.solution.to_dict() if self.solution else None,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "Query":
		status = data["status"]
		if status not in QUERY_STATUSES:
			raise ValueError(f"Unknown query status: {status}")
		solution = data.get("solution")
		return cls(
			id=str(data["id"]),
			resident_house_number=str(data["residentHouseNumber"]),
			status=status,
			created_at=int(data["createdAt"]),
			timeline=[StatusUpdate.from_dict(item) for item in data.get("timeline") or []],
			description=data.get("description") or None,
			image=data.get("image") or None,
			voice_mail=data.get("voiceMail") or None,
			voice_transcript=data.get("voiceTranscript") or None,
			solution=Solution.from_dict(solution) if solution else None,
		)


@dataclass
class Notice:
	id: str
	title: str
	content: str
	type: str
	timestamp: int
	author: str

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"title": self.title,
			"content": self.content,
			"type": self.type,
			"timestamp": self.timestamp,
			"author": self.author,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "Notice":
		notice_type = data.get("type") or "INFO"
		if notice_type not in NOTICE_TYPES:
			raise ValueError(f"Unknown notice type: {notice_type}")
		return cls(
			id=str(data["id"]),
			title=str(data["title"]),
			content=str(data["content"]),
			type=notice_type,
			timestamp=int(data["timestamp"]),
			author=str(data["author"]),
		)


@dataclass
class ChatMessage:
	id: str
	sender_house: str
	sender_role: str
	type: str
	content: str
	timestamp: int
	recipient_house: str | None = None

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"senderHouse": self.sender_house,
			"senderRole": self.sender_role,
			"recipientHouse": self.recipient_house,
			"type": self.type,
			"content": self.content,
			"timestamp": self.timestamp,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "ChatMessage":
		# Messages stored before scopes existed are group messages.
		message_type = data.get("type") or "GROUP"
		if message_type not in MESSAGE_TYPES:
			raise ValueError(f"Unknown message type: {message_type}")
		recipient = data.get("recipientHouse") or None
		if message_type == "DIRECT" and not recipient:
			raise ValueError("Direct message without recipient")
		return cls(
			id=str(data["id"]),
			sender_house=str(data["senderHouse"]),
			sender_role=str(data.get("senderRole") or "RESIDENT"),
			type=message_type,
			content=str(data["content"]),
			timestamp=int(data["timestamp"]),
			recipient_house=recipient,
		)


@dataclass
class AppState:
	users: list[User] = field(default_factory=list)
	queries: list[Query] = field(default_factory=list)
	notices: list[Notice] = field(default_factory=list)
	chat_messages: list[ChatMessage] = field(default_factory=list)
	# Per request; the browser session owns who is logged in, so this is not serialised.
	current_user: User | None = None

	def find_user(self, house_number: str | None) -> User | None:
		target = (house_number or "").strip().upper()
		return next((u for u in self.users if u.house_number == target), None)

	def find_query(self, query_id: str | None) -> Query | None:
		return next((q for q in self.queries if q.id == query_id), None)

	def find_notice(self, notice_id: str | None) -> Notice | None:
		return next((n for n in self.notices if n.id == notice_id), None)

	def to_dict(self) -> dict:
		return {
			"users": [u.to_dict() for u in self.users],
			"queries": [q.to_dict() for q in self.queries],
			"notices": [n.to_dict() for n in self.notices],
			"chatMessages": [m.to_dict() for m in self.chat_messages],
		}

	@classmethod
	def from_dict(cls, data: dict) -> "AppState":
		if not isinstance(data, dict):
			raise TypeError("State document must be an object")
		users = [User.from_dict(item) for item in data["users"]]
		houses = [u.house_number for u in users]
		if len(houses) != len(set(houses)):
			raise ValueError("Duplicate house numbers in state document")
		return cls(
			users=users,
			queries=[Query.from_dict(item) for item in data.get("queries") or []],
			notices=[Notice.from_dict(item) for item in data.get("notices") or []],
			chat_messages=[ChatMessage.from_dict(item) for item in data.get("chatMessages") or []],
		)


class StateDocument(db.Model):
	__tablename__ = "app_state_documents"

	storage_key = db.Column(db.String(64), primary_key=True)
	payload = db.Column(db.JSON, nullable=False)
	updated_at = db.Column(
		db.DateTime,
		default=datetime.utcnow,
		onupdate=datetime.utcnow,
		nullable=False,
	)
