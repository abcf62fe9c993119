# marketplace/data/seed.py
from decimal import Decimal

from marketplace.data.database import SessionLocal, init_db
from marketplace.data.models import ProductModel, UserModel

USERS = [
    {"id": 1, "name": "Asha Buyer", "email": "buyer@example.com", "phone": "9841234595", "role": "buyer"},
    {"id": 2, "name": "Green Farm", "email": "farm@example.com", "phone": "9841234596", "role": "seller"},
    {"id": 3, "name": "Hill Apiary", "email": "apiary@example.com", "phone": "9841234597", "role": "seller"},
]

PRODUCTS = [
    {"id": 1, "name": "Tomatoes", "price": Decimal("100.00"), "unit": "kg", "stock": 50, "seller_id": 2},
    {"id": 2, "name": "Spinach", "price": Decimal("40.00"), "unit": "bunch", "stock": 20, "seller_id": 2},
    {"id": 3, "name": "Honey", "price": Decimal("650.00"), "unit": "liter", "stock": 5, "seller_id": 3},
]


def seed(db=None) -> bool:
    """Demo users and products. Does nothing when users already exist."""
    own_session = db is None
    db = db or SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(UserModel).first():
            return False
        db.add_all(UserModel(**u) for u in USERS)
        db.add_all(ProductModel(**p) for p in PRODUCTS)
        db.commit()
        return True
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    init_db()
    seed()
