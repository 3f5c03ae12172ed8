"""Slot-bearing resources exposed by the API and visited by the sweeper."""

from __future__ import annotations

from datetime import timedelta

from ..db.db_models import BookModel, PostModel, SchoolModel, SchoolServicePlanModel, SubjectModel
from ..media.slot_bindings import EntityResource, SlotBinding
from .entity_schemas import (
    BookCreate,
    BookUpdate,
    PostCreate,
    PostUpdate,
    SchoolCreate,
    SchoolUpdate,
    ServicePlanCreate,
    ServicePlanUpdate,
    SubjectCreate,
    SubjectUpdate,
)

BOOK_RETENTION = timedelta(days=7)

SCHOOLS = EntityResource(
    name="schools",
    label="School",
    model=SchoolModel,
    id_column="school_id",
    slots=(
        SlotBinding("icon", "school_icon", "schools/{entity_id}/images/{slot}"),
        SlotBinding("logo", "school_logo", "schools/{entity_id}/images/{slot}"),
        SlotBinding("background", "school_background", "schools/{entity_id}/images/{slot}"),
    ),
    create_schema=SchoolCreate,
    update_schema=SchoolUpdate,
)

SERVICE_PLANS = EntityResource(
    name="service_plans",
    label="Service plan",
    model=SchoolServicePlanModel,
    id_column="plan_id",
    slots=(SlotBinding("image", "plan_image", "service_plans"),),
    create_schema=ServicePlanCreate,
    update_schema=ServicePlanUpdate,
)

SUBJECTS = EntityResource(
    name="subjects",
    label="Subject",
    model=SubjectModel,
    id_column="subject_id",
    slots=(SlotBinding("image", "subject_image", "schools/{tenant_id}/subjects"),),
    create_schema=SubjectCreate,
    update_schema=SubjectUpdate,
    tenant_column="subject_school_id",
)

POSTS = EntityResource(
    name="posts",
    label="Post",
    model=PostModel,
    id_column="post_id",
    slots=(SlotBinding("image", "post_image", "schools/{tenant_id}/posts"),),
    create_schema=PostCreate,
    update_schema=PostUpdate,
    tenant_column="post_school_id",
)

BOOKS = EntityResource(
    name="books",
    label="Book",
    model=BookModel,
    id_column="book_id",
    slots=(SlotBinding("image", "book_image", "schools/{tenant_id}/books", retention=BOOK_RETENTION),),
    create_schema=BookCreate,
    update_schema=BookUpdate,
    tenant_column="book_school_id",
)

RESOURCES: tuple[EntityResource, ...] = (SCHOOLS, SERVICE_PLANS, SUBJECTS, POSTS, BOOKS)
