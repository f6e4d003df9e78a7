import logging

from sqlalchemy.orm import Session

from foodorder.errors import Unauthorized, OrderNotAssignable, InvalidDeliveryPerson
from foodorder.models.core import Order, OrderStatus, User, UserRole
from foodorder.services.actor import Actor
from foodorder.services.orders import load_order, order_context, apply_transition
from foodorder.util.tx import commit

logger = logging.getLogger(__name__)

ASSIGNABLE = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING})


def assign_delivery_person(db: Session, order_id: str, delivery_person_id: str, actor: Actor) -> Order:
    logger.info("Assigning order %s to delivery person %s", order_id, delivery_person_id)
    if actor.role != UserRole.ADMIN:
        raise Unauthorized("Only an admin can assign delivery persons.")

    # locked + versioned: the losing admin sees ASSIGNED and is refused
    order = load_order(db, order_id, lock=True)
    if order.status not in ASSIGNABLE:
        raise OrderNotAssignable(
            f"Order {order_id} is not assignable. Current status: {order.status.value}")

    candidate = db.get(User, delivery_person_id)
    if not candidate or candidate.role != UserRole.DELIVERY_PERSON:
        raise InvalidDeliveryPerson(f"User ID {delivery_person_id} is not a valid delivery person.")

    order.delivery_person_id = candidate.id
    apply_transition(order_context(db, order), OrderStatus.ASSIGNED, actor)
    commit(db)
    db.refresh(order)
    logger.info("Order %s assigned to delivery person %s", order_id, delivery_person_id)
    return order


def _advance(db: Session, order_id: str, target: OrderStatus, actor: Actor) -> Order:
    order = load_order(db, order_id, lock=True)
    apply_transition(order_context(db, order), target, actor)
    commit(db)
    db.refresh(order)
    return order


def mark_out_for_delivery(db: Session, order_id: str, actor: Actor) -> Order:
    return _advance(db, order_id, OrderStatus.OUT_FOR_DELIVERY, actor)


def mark_delivered(db: Session, order_id: str, actor: Actor) -> Order:
    return _advance(db, order_id, OrderStatus.DELIVERED, actor)


def list_assigned_orders(db: Session, delivery_person_id: str) -> list[Order]:
    return (db.query(Order)
              .filter(Order.delivery_person_id == delivery_person_id,
                      Order.status == OrderStatus.ASSIGNED)
              .order_by(Order.updated_at.desc())
              .all())
