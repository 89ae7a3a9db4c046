from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Type

from pydantic import BaseModel

from ...core.database import Base, get_db
from ...api.deps import get_admin_user
from ...models.content import BlogPost, Service, Testimonial
from ...schemas.content import (
    BlogPostCreate, BlogPostRead, BlogPostUpdate,
    ServiceCreate, ServiceRead, ServiceUpdate,
    TestimonialCreate, TestimonialRead, TestimonialUpdate
)
from ...services.content_service import ContentService

def build_content_routers(
    path: str,
    label: str,
    model: Type[Base],
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    read_schema: Type[BaseModel],
):
    """Public read routes and administrator write routes for one content type."""
    public = APIRouter(prefix=path, tags=["Content"])
    admin = APIRouter(
        prefix=f"/admin{path}",
        tags=["Content"],
        dependencies=[Depends(get_admin_user)]
    )

    def get_service(db: Session = Depends(get_db)) -> ContentService:
        return ContentService(db, model, label)

    @public.get("", response_model=List[read_schema])
    async def list_items(service: ContentService = Depends(get_service)):
        return service.list()

    @public.get("/{item_id}", response_model=read_schema)
    async def get_item(item_id: str, service: ContentService = Depends(get_service)):
        return service.get(item_id)

    @admin.post("", response_model=read_schema, status_code=status.HTTP_201_CREATED)
    async def create_item(data: create_schema, service: ContentService = Depends(get_service)):
        return service.create(data)

    @admin.patch("/{item_id}", response_model=read_schema)
    async def update_item(item_id: str, data: update_schema, service: ContentService = Depends(get_service)):
        return service.update(item_id, data)

    @admin.delete("/{item_id}")
    async def delete_item(item_id: str, service: ContentService = Depends(get_service)):
        service.delete(item_id)
        return {"message": f"{label} deleted successfully"}

    return public, admin

routers = [
    *build_content_routers(
        "/services", "Service", Service, ServiceCreate, ServiceUpdate, ServiceRead
    ),
    *build_content_routers(
        "/testimonials", "Testimonial", Testimonial,
        TestimonialCreate, TestimonialUpdate, TestimonialRead
    ),
    *build_content_routers(
        "/blog-posts", "Blog post", BlogPost, BlogPostCreate, BlogPostUpdate, BlogPostRead
    ),
]
