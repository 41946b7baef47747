from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from analytics_app.database.connection import Base


class Contact(Base):
    """
    Contact form submission.
    
    Owned by the contacts module; analytics only counts rows per period.
    """
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
