from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
import uuid
import enum
import sqlalchemy as sa
from app.database import Base
from app.utils.timing import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class BorrowingStatus(str, enum.Enum):
    BORROWED = "borrowed"
    OVERDUE = "overdue"
    RENEWED = "renewed"
    RETURNED = "returned"


# Statuses that mean the user is still holding the copy
ACTIVE_BORROWING_STATUSES = frozenset({
    BorrowingStatus.BORROWED,
    BorrowingStatus.OVERDUE,
    BorrowingStatus.RENEWED,
})


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    branch = Column(String, nullable=True)  # Preferred over department when both are set
    department = Column(String, nullable=True)
    interests = Column(JSON, nullable=True)  # List of category names
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    borrowings = relationship("Borrowing", back_populates="user")


class Book(Base):
    __tablename__ = "books"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    author = Column(String, nullable=True)
    category = Column(String, nullable=False, index=True)
    department = Column(String, nullable=False, index=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)
    added_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Relationships
    borrowings = relationship("Borrowing", back_populates="book")


class Borrowing(Base):
    __tablename__ = "borrowings"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(String(36), ForeignKey("books.id"), nullable=False, index=True)
    status = Column(
        SQLEnum(
            BorrowingStatus,
            name="borrowingstatus",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=BorrowingStatus.BORROWED,
    )
    borrow_date = Column(DateTime, default=utcnow, nullable=False, index=True)
    due_date = Column(DateTime, nullable=True)
    return_date = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="borrowings")
    book = relationship("Book", back_populates="borrowings")


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    event_name = Column(String, nullable=False, index=True)
    properties = Column(JSON, nullable=True)
    request_id = Column(String, nullable=True)
