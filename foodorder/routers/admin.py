from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional, Literal
from sqlalchemy.orm import Session
from foodorder.db import get_db
from foodorder.config import settings
from foodorder.deps import current_actor
from foodorder.services.actor import Actor
from foodorder.util.security import hash_pw
from foodorder.models.core import (
    User, UserRole, ApprovalStatus, Restaurant, MenuItem, CustomerAddress,
)

router = APIRouter(prefix="/admin", tags=["admin"])

DEMO_PASSWORD = "secret"

class UserIn(BaseModel):
    name: str
    email: str
    password: str
    role: Literal["CUSTOMER", "DELIVERY_PERSON", "ADMIN", "RESTAURANT_OWNER"]
    phone: Optional[str] = None

def _user(db: Session, email: str, name: str, role: UserRole) -> User:
    u = db.query(User).filter(User.email == email).first()
    if not u:
        u = User(name=name, email=email, pass_hash=hash_pw(DEMO_PASSWORD), role=role,
                 approval_status=ApprovalStatus.APPROVED)
        db.add(u); db.flush()
    return u

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    if settings.APP_ENV != "dev":
        raise HTTPException(403, detail="Not allowed")

    admin = _user(db, "admin@example.com", "Admin", UserRole.ADMIN)
    owner = _user(db, "owner@example.com", "Owner", UserRole.RESTAURANT_OWNER)
    customer = _user(db, "customer@example.com", "Customer", UserRole.CUSTOMER)
    rider = _user(db, "rider@example.com", "Rider", UserRole.DELIVERY_PERSON)

    r = db.query(Restaurant).filter(Restaurant.owner_id == owner.id).first()
    if not r:
        r = Restaurant(owner_id=owner.id, name="Demo Kitchen", address="12 Food Street")
        db.add(r); db.flush()

    for name, price in (("Paneer Tikka", "120.00"), ("Veg Biryani", "180.00"), ("Lassi", "60.00")):
        exists = db.query(MenuItem).filter(MenuItem.restaurant_id == r.id, MenuItem.name == name).first()
        if not exists:
            db.add(MenuItem(restaurant_id=r.id, name=name, price=Decimal(price), available=True))

    addr = db.query(CustomerAddress).filter(CustomerAddress.user_id == customer.id).first()
    if not addr:
        addr = CustomerAddress(user_id=customer.id, line1="221B Baker Street", city="Mumbai", postal_code="400001")
        db.add(addr); db.flush()

    db.commit()
    return {
        "admin_id": admin.id,
        "owner_id": owner.id,
        "customer_id": customer.id,
        "delivery_person_id": rider.id,
        "restaurant_id": r.id,
        "address_id": addr.id,
        "menu_item_ids": [m.id for m in db.query(MenuItem).filter(MenuItem.restaurant_id == r.id).all()],
        "password": DEMO_PASSWORD,
    }

@router.post("/users")
def create_user(body: UserIn, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    if actor.role != UserRole.ADMIN:
        raise HTTPException(403, detail="Only admin can create users")
    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(409, detail="Email already exists")
    u = User(
        name=body.name,
        email=body.email,
        phone=body.phone,
        pass_hash=hash_pw(body.password),
        role=UserRole(body.role),
        approval_status=ApprovalStatus.APPROVED,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return {"id": u.id}
