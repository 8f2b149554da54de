from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from cavision.db.session import Base


class UserProfileRecord(Base):
    """One document per user, keyed by the identity provider uid."""

    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    email = Column(String(320), nullable=True)
    display_name = Column(String(255), nullable=True)
    bio = Column(String(160), nullable=True)
    city = Column(String(120), nullable=True)
    ca_level = Column(String(32), nullable=True)
    photo_url = Column(String(1024), nullable=True)
    social_links = Column(JSON, nullable=False, default=dict)

    quizzes_generated = Column(Integer, nullable=False, default=0, server_default="0")
    total_mcqs_attempted = Column(Integer, nullable=False, default=0, server_default="0")
    total_mcqs_correct = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
