"""
SQLAlchemy Database Models

Order aggregate (Order + OrderLine), restaurant reviews, and the two
read-only collaborator tables the engine consults: restaurants and
their catalog products.

Money columns are Numeric with two decimal places and are handled as
decimal.Decimal in Python. Timestamps are timezone-qualified UTC.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from restaurant_orders.database import Base


# Largest quantity accepted on a single order line
MAX_LINE_QUANTITY = 10_000


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PREPARATION = "IN_PREPARATION"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# =============================================================================
# COLLABORATOR TABLES (read-only to the order engine)
# =============================================================================

class Restaurant(Base):
    """Restaurant directory entry."""
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    owner_user_id = Column(Integer, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name} - owner {self.owner_user_id}>"


class Product(Base):
    """Catalog product with its authoritative price."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Product #{self.id} - {self.name} - {self.price}>"


# =============================================================================
# ORDER AGGREGATE
# =============================================================================

class Order(Base):
    """
    Client purchase against one restaurant.

    `version` backs optimistic locking: every UPDATE/DELETE issued by the
    ORM carries the version it read, so a concurrent writer that got
    there first makes this one fail with StaleDataError.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # OWNERSHIP (immutable after creation)
    # =========================================================================
    client_id = Column(Integer, nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    restaurant_name = Column(String(150), nullable=False)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    comments = Column(Text, nullable=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    total = Column(Numeric(12, 2), nullable=False)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    version = Column(Integer, nullable=False)

    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_orders_restaurant_created", "restaurant_id", "created_at"),
        Index("ix_orders_client_created", "client_id", "created_at"),
    )

    def __repr__(self):
        return f"<Order #{self.id} - restaurant {self.restaurant_id} - {self.status.value}>"


class OrderLine(Base):
    """Immutable price/quantity snapshot of one product within an order."""
    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position = Column(Integer, nullable=False)

    product_id = Column(Integer, nullable=False)
    product_name = Column(String(150), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="lines")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_lines_quantity_positive"),
    )

    def __repr__(self):
        return f"<OrderLine {self.product_name} x{self.quantity} = {self.subtotal}>"


# =============================================================================
# REVIEWS
# =============================================================================

class Review(Base):
    """One score and comment per (restaurant, user)."""
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    score = Column(Integer, nullable=False)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("restaurant_id", "user_id", name="uq_reviews_restaurant_user"),
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_reviews_score_range"),
    )

    def __repr__(self):
        return f"<Review #{self.id} - restaurant {self.restaurant_id} - {self.score}/5>"
