# luukahead/app/models/session.py
from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from luukahead.app.db.base import Base


class AuthSession(Base):
    """
    A login session.

    The primary key is the hex SHA-256 of the token held in the client's
    cookie; the raw token is never stored.
    """
    __tablename__ = "session"

    id = Column(String(64), primary_key=True)
    user_id = Column(
        String(32),
        ForeignKey("user.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="sessions")

    def __repr__(self) -> str:
        return f"<AuthSession user_id={self.user_id!r} expires_at={self.expires_at!r}>"
