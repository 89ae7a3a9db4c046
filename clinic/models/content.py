from sqlalchemy import Column, String, Integer, DateTime, Text, JSON
from datetime import datetime

from ..core.database import Base, generate_id

class Service(Base):
    __tablename__ = "services"

    id = Column(String(32), primary_key=True, default=generate_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    features = Column(JSON, nullable=False, default=list)
    image_url = Column(String(500), nullable=True)
    icon = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Service(id={self.id}, title='{self.title}')>"

class Testimonial(Base):
    __tablename__ = "testimonials"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(120), nullable=False)
    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String(500), nullable=True)
    location = Column(String(120), nullable=True)
    service = Column(String(200), nullable=True)
    date = Column(String(40), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Testimonial(id={self.id}, name='{self.name}', rating={self.rating})>"

class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(String(32), primary_key=True, default=generate_id)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(String(500), nullable=False, default="")
    image_url = Column(String(500), nullable=True)
    author = Column(String(120), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<BlogPost(id={self.id}, title='{self.title}')>"
