# ============================================================================
# Question Bank Models
# ============================================================================
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy import Text, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from app.core.database import Base

class Category(Base):
    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subcategories = relationship("Subcategory", back_populates="category", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Category {self.name}>"

class Subcategory(Base):
    __tablename__ = "subcategories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    category_id = Column(Uuid, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    category = relationship("Category", back_populates="subcategories")
    questions = relationship("Question", back_populates="subcategory")

    def __repr__(self):
        return f"<Subcategory {self.name}>"

class Question(Base):
    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    subcategory_id = Column(Uuid, ForeignKey("subcategories.id"), nullable=False, index=True)

    question_text = Column(Text, nullable=False)
    question_type = Column(String(30), nullable=False, default="mcq")  # mcq, true_false, fill_blank
    options = Column(JSON, nullable=True)  # ["option a", "option b", ...]
    correct_answer = Column(Text, nullable=False)
    explanation = Column(Text)
    marks = Column(Integer, default=1)
    difficulty = Column(String(20), default="medium", index=True)  # easy, medium, hard

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subcategory = relationship("Subcategory", back_populates="questions")

    def __repr__(self):
        return f"<Question {self.id} ({self.difficulty})>"
