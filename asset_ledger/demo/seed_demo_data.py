# asset_ledger/demo/seed_demo_data.py

from typing import List

from asset_ledger.core.identity import Actor
from asset_ledger.core.store import AssetStore
from asset_ledger.storage.models import Asset

# Fixed demo identities; not an authentication mechanism
DEMO_ACTORS = {
    "admin": Actor(user_id="1", username="admin"),
    "gerente": Actor(user_id="2", username="gerente"),
    "inventario": Actor(user_id="3", username="inventario"),
}

DEMO_ASSETS = [
    {
        "name": "Laptop",
        "type": "Hardware",
        "subtype": "Portable",
        "serial_number": "LT-2024-001",
        "responsible": "Juan",
        "location": "Office A",
        "cost": 1000,
    },
    {
        "name": "Office license",
        "type": "Software",
        "description": "Annual productivity suite subscription",
        "responsible": "Maria",
        "location": "Head office",
        "cost": "249.99",
    },
    {
        "name": "Standing desk",
        "type": "Furniture",
        "responsible": "Pedro",
        "location": "Office B",
        "cost": 420,
        "status": "inactive",
    },
]


def seed_demo_data(store: AssetStore) -> List[Asset]:
    """Create the demo assets and a short history for the first one."""
    admin = DEMO_ACTORS["admin"]
    inventory = DEMO_ACTORS["inventario"]

    assets = [store.create(data, admin) for data in DEMO_ASSETS]

    laptop = assets[0]
    store.relocate(laptop.id, "Office B", "Maria", inventory)
    store.update_cost(laptop.id, "950.00", DEMO_ACTORS["gerente"])
    return assets


if __name__ == "__main__":
    from asset_ledger.storage.repository import SQLiteAssetRepository, initialize_schema

    initialize_schema()
    seeded = seed_demo_data(AssetStore(SQLiteAssetRepository()))
    print(f"Demo inventory inserted: {len(seeded)} assets")
