from werkzeug.security import generate_password_hash

from app import create_app
from models import Menu, MenuItem, Restaurant, Table, User, db

STAFF = [
    ("owner", "owner"),
    ("manager", "manager"),
    ("server", "server"),
    ("kitchen", "kitchen"),
]

app = create_app()
with app.app_context():
    db.create_all()
    restaurant = Restaurant.query.first()
    if restaurant is None:
        restaurant = Restaurant(name="Demo Bistro")
        db.session.add(restaurant)
        db.session.flush()

    for username, role in STAFF:
        if not User.query.filter_by(username=username).first():
            db.session.add(User(
                restaurant_id=restaurant.id,
                username=username,
                password_hash=generate_password_hash("password"),
                role=role,
            ))

    if Menu.query.count() == 0:
        menu = Menu(restaurant_id=restaurant.id, name="All day")
        db.session.add(menu)
        db.session.flush()
        db.session.add_all([
            MenuItem(menu_id=menu.id, name="Margherita Pizza", price_cents=1199, category="Pizza"),
            MenuItem(menu_id=menu.id, name="Caesar Salad", price_cents=950, category="Salad"),
            MenuItem(menu_id=menu.id, name="Spaghetti Bolognese", price_cents=1225, category="Pasta"),
        ])

    if Table.query.count() == 0:
        db.session.add_all([
            Table(restaurant_id=restaurant.id, label="T1", capacity=4),
            Table(restaurant_id=restaurant.id, label="T2", capacity=2),
            Table(restaurant_id=restaurant.id, label="T3", capacity=6),
        ])

    db.session.commit()
    print("Seeded. Usernames=owner/manager/server/kitchen, Password=password")
