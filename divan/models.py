import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .shared.clock import utcnow


def generate_id():
    return str(uuid.uuid4())


# ============================================================================
# PROFILES & AUTH
# ============================================================================


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(20), default="client", nullable=False)  # client, professional
    status = Column(String(20), default="pending_email", nullable=False)  # pending_email, active, blocked
    email_verified_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)  # Soft-delete marker
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_professional(self) -> bool:
        return self.role == "professional"

    @property
    def is_blocked_or_deleted(self) -> bool:
        return self.status == "blocked" or self.deleted_at is not None

    @property
    def is_email_verified(self) -> bool:
        return self.email_verified_at is not None and self.status != "pending_email"


class EmailVerification(Base):
    __tablename__ = "email_verifications"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)  # Raw token is never stored
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("Profile")


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("Profile")


# ============================================================================
# CATALOG & ORDERS
# ============================================================================


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("sessions_count > 0", name="ck_products_sessions_count"),
        CheckConstraint("price_cents > 0", name="ck_products_price_cents"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    appointment_type = Column(String(10), nullable=False)  # video, chat
    sessions_count = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    # pending, pending_pix, paid, failed, cancelled, refunded
    status = Column(String(20), default="pending", nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    payment_method = Column(String(10), nullable=False)  # card, pix
    pix_reference = Column(String(64), nullable=True, unique=True)
    stripe_payment_intent_id = Column(String(255), nullable=True, unique=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("Profile", foreign_keys=[user_id])
    product = relationship("Product")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """Snapshot of the product at purchase time"""

    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    title = Column(String(255), nullable=False)
    appointment_type = Column(String(10), nullable=False)
    sessions_count = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")


class SessionCredit(Base):
    __tablename__ = "session_credits"
    __table_args__ = (
        CheckConstraint("used >= 0 AND used <= total", name="ck_session_credits_used"),
        UniqueConstraint("order_id", name="uq_session_credits_order_id"),
        Index("ix_session_credits_owner", "user_id", "professional_id", "appointment_type", "status"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    appointment_type = Column(String(10), nullable=False)
    total = Column(Integer, nullable=False)
    used = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="active", nullable=False)  # active, consumed, refunded
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def remaining(self) -> int:
        return self.total - self.used


# ============================================================================
# SCHEDULING
# ============================================================================


class ProfessionalSettings(Base):
    __tablename__ = "professional_settings"

    professional_id = Column(String(36), ForeignKey("profiles.id"), primary_key=True)
    timezone = Column(String(64), default="America/Sao_Paulo", nullable=False)
    session_duration_video_min = Column(Integer, default=50, nullable=False)
    session_duration_chat_min = Column(Integer, default=50, nullable=False)
    min_cancel_hours = Column(Integer, default=24, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def duration_for(self, appointment_type: str) -> int:
        if appointment_type == "chat":
            return self.session_duration_chat_min
        return self.session_duration_video_min


class AvailabilityRule(Base):
    __tablename__ = "availability_rules"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)  # 0=Sunday ... 6=Saturday
    start_time = Column(Time, nullable=False)  # Local time in the professional's timezone
    end_time = Column(Time, nullable=False)
    appointment_type = Column(String(10), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class AvailabilityBlock(Base):
    __tablename__ = "availability_blocks"

    id = Column(String(36), primary_key=True, default=generate_id)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_appointments_window"),
        Index("ix_appointments_professional_window", "professional_id", "start_at", "end_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    appointment_type = Column(String(10), nullable=False)
    status = Column(String(20), default="scheduled", nullable=False)  # scheduled, completed, cancelled, rescheduled
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    credit_id = Column(String(36), ForeignKey("session_credits.id"), nullable=True)
    video_room_name = Column(String(64), nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    client = relationship("Profile", foreign_keys=[user_id])
    professional = relationship("Profile", foreign_keys=[professional_id])
    credit = relationship("SessionCredit")


# ============================================================================
# SESSION ROOM
# ============================================================================


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    sender_role = Column(String(20), nullable=False)  # client, professional
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class SessionNotes(Base):
    __tablename__ = "session_notes"

    appointment_id = Column(String(36), ForeignKey("appointments.id", ondelete="CASCADE"), primary_key=True)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    complaint = Column(Text, nullable=True)
    associations = Column(Text, nullable=True)
    interventions = Column(Text, nullable=True)
    plan = Column(Text, nullable=True)
    observations = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# ============================================================================
# NOTIFICATIONS & OUTBOX
# ============================================================================


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    data = Column("metadata", JSON, default=dict, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class OutboxEvent(Base):
    """External side effect recorded in the same transaction as the state change"""

    __tablename__ = "outbox_events"

    id = Column(String(36), primary_key=True, default=generate_id)
    kind = Column(String(60), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, sending, sent, failed
    attempts = Column(Integer, default=0, nullable=False)
    claimed_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    sent_at = Column(DateTime, nullable=True)


# ============================================================================
# REVIEWS
# ============================================================================


class Review(Base):
    """Client rating of a completed session; hidden until the professional publishes it"""

    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("stars >= 1 AND stars <= 5", name="ck_reviews_stars"),
        UniqueConstraint("appointment_id", name="uq_reviews_appointment_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False)
    professional_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    author_name = Column(String(120), nullable=False)
    stars = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    is_published = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    appointment = relationship("Appointment")


# ============================================================================
# BLOG
# ============================================================================


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(String(36), primary_key=True, default=generate_id)
    author_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=False, default="")
    featured_image_url = Column(String(500), nullable=True)
    status = Column(String(20), default="draft", nullable=False)  # draft, published, archived
    views = Column(Integer, default=0, nullable=False)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    author = relationship("Profile")
