from core.database import Base
from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, UpdatedAtMixin


class User(Base, CreatedAtMixin, UpdatedAtMixin):
    """
    Account record owned by the user store. The session services only read it.
    """
    __tablename__ = "users"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    auth_tokens = relationship("AuthToken", back_populates="user", passive_deletes=True)

    email = Column(String, unique=True, nullable=False, index=True)
    first_name = Column(String)
    last_name = Column(String)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(String, default="customer", nullable=False)
    # Overrides MAX_ACTIVE_DEVICES when set; <= 0 means no limit
    max_devices = Column(Integer, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
