"""
Demo data seed script.

Creates the demo marketplace used in screenshots and local development:
one distributor (Kathmandu), one advertiser (Go Media), two customers,
a retailer, four products, three QR campaigns, a scan per campaign and
three orders settled through the commission ledger.

SAFE TO RE-RUN:
- No DELETE operations - only INSERTs
- Exits early if the demo campaigns already exist

Usage:
    python -m glasscart.seed_demo
"""

from datetime import datetime, timedelta
from decimal import Decimal

from glasscart import models
from glasscart.database import Base, engine, get_sync_session
from glasscart.repository import LedgerRepository
from glasscart.schemas import OrderCreate
from glasscart.services.checkout import create_order


# =============================================================================
# CONFIGURATION
# =============================================================================

USERS = [
    {"key": "kathmandu", "name": "Kathmandu", "email": "distributor@kathmandu.co.nz", "role": models.RoleEnum.distributor},
    {"key": "gomedia", "name": "Go Media", "email": "ads@gomedia.nz", "role": models.RoleEnum.advertiser},
    {"key": "jane", "name": "Jane Doe", "email": "jane@example.com", "role": models.RoleEnum.customer},
    {"key": "john", "name": "John Smith", "email": "john@smith.com", "role": models.RoleEnum.customer},
    {"key": "retailer", "name": "Retailer A", "email": "retailerA@shop.com", "role": models.RoleEnum.retailer},
]

PRODUCTS = [
    {
        "key": "tee",
        "name": "GlassCart QR T-Shirt",
        "price": Decimal("39.99"),
        "description": "Premium cotton t-shirt with GlassCart QR code.",
        "image_url": "https://via.placeholder.com/120x120?text=QR+Tee",
        "stock_quantity": 50,
    },
    {
        "key": "bottle",
        "name": "GlassCart Water Bottle",
        "price": Decimal("24.99"),
        "description": "Stainless steel bottle with GlassCart branding.",
        "image_url": "https://via.placeholder.com/120x120?text=Bottle",
        "stock_quantity": 100,
    },
    {
        "key": "tote",
        "name": "GlassCart Tote Bag",
        "price": Decimal("14.99"),
        "description": "Eco-friendly tote bag for everyday use.",
        "image_url": "https://via.placeholder.com/120x120?text=Tote+Bag",
        "stock_quantity": 75,
    },
    {
        "key": "cap",
        "name": "GlassCart Cap",
        "price": Decimal("19.99"),
        "description": "Stylish cap with GlassCart logo.",
        "image_url": "https://via.placeholder.com/120x120?text=Cap",
        "stock_quantity": 60,
    },
]

# (campaign name, product key, identifier, commission %, placement, days running)
CAMPAIGNS = [
    ("Winter QR Campaign", "tee", "winter_qr_2025", 10, "Wellington Bus Stop", 30),
    ("Summer Bottle Promo", "bottle", "summer_bottle_2025", 12, "Auckland CBD Window", 60),
    ("Eco Tote Drive", "tote", "eco_tote_2025", 15, "Christchurch Mall", 45),
]

SCANS = [
    {
        "campaign": "winter_qr_2025",
        "lat": -41.2865, "lon": 174.7762,
        "city": "Wellington", "suburb": "Te Aro", "region": "Wellington",
        "weather": {"temp": 13, "condition": "Cloudy"},
        "distance_to_store_m": 50, "nearest_poi": "Bus Stop", "distance_to_poi_m": 10,
        "device_type": "mobile", "scan_source": "poster",
    },
    {
        "campaign": "summer_bottle_2025",
        "lat": -36.8485, "lon": 174.7633,
        "city": "Auckland", "suburb": "CBD", "region": "Auckland",
        "weather": {"temp": 18, "condition": "Sunny"},
        "distance_to_store_m": 100, "nearest_poi": "Mall", "distance_to_poi_m": 30,
        "device_type": "mobile", "scan_source": "window",
    },
    {
        "campaign": "eco_tote_2025",
        "lat": -43.5321, "lon": 172.6362,
        "city": "Christchurch", "suburb": "Riccarton", "region": "Canterbury",
        "weather": {"temp": 10, "condition": "Rain"},
        "distance_to_store_m": 200, "nearest_poi": "School", "distance_to_poi_m": 100,
        "device_type": "tablet", "scan_source": "poster",
    },
]

# (customer key, product key, campaign identifier, quantity, total, address, converts the seeded scan)
ORDERS = [
    ("jane", "tee", "winter_qr_2025", 2, "79.98", "123 Queen Street, Auckland", True),
    ("john", "bottle", "summer_bottle_2025", 1, "24.99", "456 Cuba Street, Wellington", False),
    ("jane", "tote", "eco_tote_2025", 3, "44.97", "789 Riccarton Road, Christchurch", True),
]


# =============================================================================
# STEPS
# =============================================================================

def create_users(db) -> dict:
    users = {}
    for row in USERS:
        user = models.User(name=row["name"], email=row["email"], role=row["role"])
        db.add(user)
        users[row["key"]] = user
    db.flush()
    print(f"   Created {len(users)} users")
    return users


def create_products(db, distributor: models.User) -> dict:
    products = {}
    for row in PRODUCTS:
        fields = {k: v for k, v in row.items() if k != "key"}
        product = models.Product(distributor_id=distributor.id, **fields)
        db.add(product)
        products[row["key"]] = product
    db.flush()
    print(f"   Created {len(products)} products")
    return products


def create_campaigns(db, advertiser: models.User, products: dict) -> dict:
    now = datetime.utcnow()
    campaigns = {}
    for name, product_key, identifier, rate, location, days in CAMPAIGNS:
        campaign = models.Campaign(
            advertiser_id=advertiser.id,
            product_id=products[product_key].id,
            campaign_name=name,
            start_date=now,
            end_date=now + timedelta(days=days),
            code_identifier=identifier,
            commission_percent=rate,
            location=location,
        )
        db.add(campaign)
        campaigns[identifier] = campaign
    db.flush()
    print(f"   Created {len(campaigns)} campaigns")
    return campaigns


def create_scans(db, campaigns: dict) -> dict:
    now = datetime.utcnow()
    scans = {}
    for offset, row in enumerate(SCANS):
        fields = {k: v for k, v in row.items() if k != "campaign"}
        scan = models.Scan(
            campaign_id=campaigns[row["campaign"]].id,
            scanned_at=now - timedelta(hours=offset + 1),
            user_agent="Mozilla/5.0",
            **fields,
        )
        db.add(scan)
        scans[row["campaign"]] = scan
    db.flush()
    print(f"   Created {len(scans)} scans")
    return scans


def create_orders(repo: LedgerRepository, users: dict, products: dict, campaigns: dict, scans: dict) -> list:
    """Orders go through checkout so payouts come from the real ledger."""
    settled = []
    for customer, product_key, identifier, quantity, total, address, converts in ORDERS:
        order, payouts, _ = create_order(
            repo,
            OrderCreate(
                customer_id=users[customer].id,
                product_id=products[product_key].id,
                campaign_id=campaigns[identifier].id,
                scan_id=scans[identifier].id if converts else None,
                quantity=quantity,
                total_amount=Decimal(total),
                shipping_address=address,
            ),
        )
        split = ", ".join(f"{p.type.value}={p.amount}" for p in payouts)
        print(f"   Order {order.total_amount} via {identifier}: {split}")
        settled.append(order)
    return settled


# =============================================================================
# MAIN SEED FUNCTION
# =============================================================================

def seed_demo():
    """Main seeding function for the demo marketplace."""

    print("\n" + "=" * 70)
    print(" GLASSCART DEMO SEED SCRIPT")
    print("=" * 70 + "\n")

    # Local SQLite databases have no migrations applied
    Base.metadata.create_all(bind=engine)

    with get_sync_session() as db:
        repo = LedgerRepository(db)
        if repo.get_campaign_by_identifier(CAMPAIGNS[0][2]):
            print(" Demo data already present, nothing to do.\n")
            return

        try:
            print("1. Creating users...")
            users = create_users(db)

            print("\n2. Creating products...")
            products = create_products(db, users["kathmandu"])

            print("\n3. Creating campaigns...")
            campaigns = create_campaigns(db, users["gomedia"], products)

            print("\n4. Creating scans...")
            scans = create_scans(db, campaigns)
            db.commit()

            print("\n5. Creating and settling orders...")
            orders = create_orders(repo, users, products, campaigns, scans)

        except Exception as e:
            db.rollback()
            print(f"\n ERROR: {e}")
            raise

        print("\n" + "=" * 70)
        print(" SEED COMPLETE!")
        print("=" * 70)
        for identifier, campaign in campaigns.items():
            print(f"   {identifier}: {campaign.id}")
        print(f"   Orders settled: {len(orders)}")
        print("=" * 70 + "\n")


if __name__ == "__main__":
    seed_demo()
