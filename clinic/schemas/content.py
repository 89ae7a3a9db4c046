from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field

# Services
class ServiceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str
    features: List[str] = []
    image_url: Optional[str] = None
    icon: Optional[str] = None

class ServiceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    features: Optional[List[str]] = None
    image_url: Optional[str] = None
    icon: Optional[str] = None

class ServiceRead(ServiceCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime

# Testimonials
class TestimonialCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    rating: int = Field(..., ge=1, le=5)
    content: str
    image_url: Optional[str] = None
    location: Optional[str] = None
    service: Optional[str] = None
    date: Optional[str] = None

class TestimonialUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    rating: Optional[int] = Field(None, ge=1, le=5)
    content: Optional[str] = None
    image_url: Optional[str] = None
    location: Optional[str] = None
    service: Optional[str] = None
    date: Optional[str] = None

class TestimonialRead(TestimonialCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime

# Blog posts
class BlogPostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str
    excerpt: str = ""
    image_url: Optional[str] = None
    author: str

class BlogPostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = None
    excerpt: Optional[str] = None
    image_url: Optional[str] = None
    author: Optional[str] = None

class BlogPostRead(BlogPostCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime
