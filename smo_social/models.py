# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Boolean, Float, BigInteger, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="viewer")  # admin, manager, editor, contributor, viewer
    # explicit overrides on top of the role defaults
    granted_permissions = Column(JSON, nullable=False, default=list)
    revoked_permissions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True)
    is_superadmin = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assignments = relationship("TeamAssignment", back_populates="user", foreign_keys="TeamAssignment.user_id", cascade="all, delete-orphan")
    posts = relationship("Post", back_populates="author")

class TeamAssignment(Base):
    __tablename__ = "team_assignments"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    platform = Column(String, nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="assignments", foreign_keys=[user_id])

    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_user_platform"),)

class NetworkGroup(Base):
    __tablename__ = "network_groups"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    platforms = Column(JSON, nullable=False, default=list)
    member_ids = Column(JSON, nullable=False, default=list)
    settings = Column(JSON, nullable=False, default=dict)
    color = Column(String, nullable=False, default="#3b82f6")
    icon = Column(String, nullable=False, default="users")
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class PermissionLog(Base):
    __tablename__ = "permission_logs"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    permission = Column(String, nullable=False)
    result = Column(String, nullable=False)  # granted, denied
    context = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Option(Base):
    __tablename__ = "options"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class Transient(Base):
    __tablename__ = "transients"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    value = Column(JSON, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

class Post(Base):
    __tablename__ = "posts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String, nullable=True)
    content = Column(Text, nullable=False, default="")
    post_type = Column(String, nullable=False, default="text")  # text, image, link, video, gallery, reshare
    platforms = Column(JSON, nullable=False, default=list)
    links = Column(JSON, nullable=False, default=list)
    media_ids = Column(JSON, nullable=False, default=list)
    hashtags = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="draft", index=True)  # draft, scheduled, published, failed
    priority = Column(String, nullable=False, default="normal")
    content_idea_id = Column(Integer, ForeignKey("content_ideas.id"), nullable=True)
    scheduled_time = Column(DateTime(timezone=True), nullable=True)
    published_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    author = relationship("User", back_populates="posts")
    content_idea = relationship("ContentIdea", back_populates="posts")
    category_assignments = relationship("PostCategoryAssignment", back_populates="post", cascade="all, delete-orphan")

class PostTemplate(Base):
    __tablename__ = "post_templates"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False, default="")
    post_type = Column(String, nullable=False, default="text")
    platforms = Column(JSON, nullable=False, default=list)
    hashtags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class ContentCategory(Base):
    __tablename__ = "content_categories"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    color_code = Column(String, nullable=False, default="#007cba")
    icon = Column(String, nullable=False, default="dashicons-category")
    parent_id = Column(Integer, ForeignKey("content_categories.id"), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assignments = relationship("PostCategoryAssignment", back_populates="category", cascade="all, delete-orphan")

class PostCategoryAssignment(Base):
    __tablename__ = "post_category_assignments"
    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("content_categories.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    post = relationship("Post", back_populates="category_assignments")
    category = relationship("ContentCategory", back_populates="assignments")

    __table_args__ = (UniqueConstraint("post_id", "category_id", name="uq_post_category"),)

class ContentIdea(Base):
    __tablename__ = "content_ideas"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content_type = Column(String, nullable=False, default="text")
    target_platforms = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    category = Column(String, nullable=False, default="general")
    priority = Column(String, nullable=False, default="normal")  # low, normal, high, urgent
    status = Column(String, nullable=False, default="idea", index=True)  # idea, draft, scheduled, published
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    posts = relationship("Post", back_populates="content_idea")

class MediaAsset(Base):
    __tablename__ = "media_assets"
    id = Column(Integer, primary_key=True, index=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    filename = Column(String, nullable=False)
    title = Column(String, nullable=True)
    alt_text = Column(Text, nullable=True)
    url = Column(Text, nullable=False)
    storage_path = Column(Text, nullable=True)
    mime_type = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class Comment(Base):
    __tablename__ = "comments"
    id = Column(Integer, primary_key=True, index=True)
    platform = Column(String, nullable=False, index=True)
    platform_comment_id = Column(String, nullable=False)
    platform_post_id = Column(String, nullable=True)
    author_name = Column(String, nullable=True)
    content = Column(Text, nullable=False, default="")
    sentiment = Column(String, nullable=False, default="neutral")  # positive, neutral, negative
    status = Column(String, nullable=False, default="pending", index=True)  # pending, replied, hidden
    reply_content = Column(Text, nullable=True)
    replied_at = Column(DateTime(timezone=True), nullable=True)
    replied_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("platform", "platform_comment_id", name="uq_platform_comment"),)

class AudienceDemographic(Base):
    __tablename__ = "audience_demographics"
    id = Column(Integer, primary_key=True, index=True)
    platform = Column(String, nullable=False, index=True)
    age_range = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    location_country = Column(String, nullable=True)
    location_city = Column(String, nullable=True)
    total_percentage = Column(Float, nullable=False, default=0.0)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

class AnalyticsMetric(Base):
    __tablename__ = "analytics_metrics"
    id = Column(Integer, primary_key=True, index=True)
    platform = Column(String, nullable=False, index=True)
    post_ref = Column(String, nullable=True)
    metric_name = Column(String, nullable=False)  # reach, impressions, likes, comments, shares, clicks
    metric_value = Column(Float, nullable=False, default=0.0)
    post_date = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class MemorySnapshot(Base):
    __tablename__ = "memory_snapshots"
    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    total_usage = Column(BigInteger, nullable=False, default=0)
    memory_limit = Column(BigInteger, nullable=False, default=0)
    usage_percentage = Column(Float, nullable=False, default=0.0)
    efficiency_score = Column(Float, nullable=False, default=100.0)
    status = Column(String, nullable=False, default="normal", index=True)
    memory_data = Column(JSON, nullable=False, default=dict)

class MemoryAlert(Base):
    __tablename__ = "memory_alerts"
    id = Column(Integer, primary_key=True, index=True)
    severity = Column(String, nullable=False)  # info, warning, critical
    message = Column(Text, nullable=False)
    usage_percentage = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
