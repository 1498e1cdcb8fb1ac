from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from auth_service.database import Base
from auth_service.utils.time import utcnow


class EmailVerification(Base):
    __tablename__ = "email_verifications"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    # One live verification per user
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="email_verification")

    def __repr__(self):
        return f"<EmailVerification user={self.user_id} expires={self.expires_at}>"

    def is_expired(self) -> bool:
        """Check if the verification link is expired"""
        return utcnow() > self.expires_at
