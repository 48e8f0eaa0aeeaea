# luukahead/app/models/user.py
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from luukahead.app.db.base import Base


class User(Base):
    __tablename__ = "user"

    # 15 random bytes, lower-case base32 (see security.sessions.generate_user_id)
    id = Column(String(32), primary_key=True)

    # Chosen once, at registration or first OAuth resolution
    username = Column(String(31), unique=True, index=True, nullable=False)

    # "base64(salt):base64(digest)"; NULL for OAuth-only accounts
    password_hash = Column(String(255), nullable=True)

    google_id = Column(String(255), unique=True, nullable=True)
    microsoft_id = Column(String(255), unique=True, nullable=True)

    sessions = relationship(
        "AuthSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User id={self.id!r} username={self.username!r}>"
