"""SQLAlchemy persistence for per-user decision logs."""

import logging
from datetime import datetime, timezone
from typing import List
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from chaispas import config
from chaispas.analytics import MAX_HISTORY, DecisionLog
from chaispas.errors import IntegrityError, ParseError, StorageUnavailable
from chaispas.models import Choice, DecisionRecord, SaveDecisionRequest

logger = logging.getLogger(__name__)

Base = declarative_base()


class DecisionRow(Base):
    __tablename__ = "decisions"
    seq = Column(Integer, primary_key=True, autoincrement=True)  # Insertion order
    id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    selected_choice_id = Column(String, nullable=False)
    decision_time = Column(Integer, nullable=False)  # Milliseconds
    created_at = Column(DateTime, nullable=False)  # Naive UTC

    choices = relationship(
        "ChoiceRow",
        back_populates="decision",
        order_by="ChoiceRow.position",
        cascade="all, delete-orphan",
    )


class ChoiceRow(Base):
    __tablename__ = "choices"
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    number = Column(Integer, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    decision_seq = Column(Integer, ForeignKey("decisions.seq"), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    decision = relationship("DecisionRow", back_populates="choices")


config.ensure_data_dir()
engine = create_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create tables if they don't exist
Base.metadata.create_all(bind=engine)


# Dependency to provide a database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_record(row: DecisionRow) -> DecisionRecord:
    choices = [Choice(id=c.id, text=c.text, number=c.number) for c in row.choices]
    selected = next((c for c in choices if c.id == row.selected_choice_id), None)
    if selected is None:
        raise ParseError(f"Stored decision {row.id} has no matching selected choice")
    return DecisionRecord(
        id=row.id,
        timestamp=row.created_at.replace(tzinfo=timezone.utc),
        choices=choices,
        selected_choice=selected,
        decision_time=row.decision_time,
    )


def _to_row(user_id: str, record: DecisionRecord) -> DecisionRow:
    timestamp = record.timestamp
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    return DecisionRow(
        id=record.id,
        user_id=user_id,
        selected_choice_id=record.selected_choice.id,
        decision_time=record.decision_time,
        created_at=timestamp,
        choices=[
            ChoiceRow(id=c.id, text=c.text, number=c.number, user_id=user_id, position=i)
            for i, c in enumerate(record.choices)
        ],
    )


def load_user_log(db: Session, user_id: str) -> DecisionLog:
    rows = (
        db.query(DecisionRow)
        .filter(DecisionRow.user_id == user_id)
        .order_by(DecisionRow.seq)
        .all()
    )
    return [_to_record(row) for row in rows]


def _evict_oldest(db: Session, user_id: str):
    stale = (
        db.query(DecisionRow)
        .filter(DecisionRow.user_id == user_id)
        .order_by(DecisionRow.seq.desc())
        .offset(MAX_HISTORY)
        .all()
    )
    for row in stale:
        db.delete(row)
    if stale:
        logger.debug("Evicted %d old decisions for user %s", len(stale), user_id)


def record_submission(db: Session, user_id: str, request: SaveDecisionRequest) -> DecisionRow:
    """
    Persist a submitted decision atomically.

    Choice ids are assigned here, so the winner is matched by text and number.
    Either the choices, the decision and their linkage all commit, or nothing does.
    """
    try:
        choice_rows: List[ChoiceRow] = [
            ChoiceRow(
                id=str(uuid4()),
                text=choice.text,
                number=choice.number,
                user_id=user_id,
                position=i,
            )
            for i, choice in enumerate(request.choices)
        ]
        selected = next(
            (
                row
                for row in choice_rows
                if row.text == request.selected_choice.text
                and row.number == request.selected_choice.number
            ),
            None,
        )
        if selected is None:
            raise IntegrityError("Selected choice not found")

        decision = DecisionRow(
            id=str(uuid4()),
            user_id=user_id,
            selected_choice_id=selected.id,
            decision_time=request.decision_time,
            created_at=_utcnow(),
            choices=choice_rows,
        )
        db.add(decision)
        db.flush()
        _evict_oldest(db, user_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Rejected decision for user %s: selected choice not found", user_id)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageUnavailable(f"Could not save decision: {e}") from e
    return decision


class SqlDecisionStore:
    """One user's decision log, read and written through a SQLAlchemy session."""

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def load(self) -> DecisionLog:
        try:
            return load_user_log(self.db, self.user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageUnavailable(f"Could not load decisions: {e}") from e

    def store(self, log: DecisionLog) -> None:
        try:
            rows = self.db.query(DecisionRow).filter(DecisionRow.user_id == self.user_id).all()
            for row in rows:
                self.db.delete(row)
            self.db.flush()
            self.db.add_all([_to_row(self.user_id, record) for record in log])
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageUnavailable(f"Could not store decisions: {e}") from e
