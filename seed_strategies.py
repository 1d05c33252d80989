"""
Seed script: registers the strategy catalog and its videos.

Usage:
    python seed_strategies.py

Idempotent: strategies are matched by number, videos by (strategy, order).
"""
from app.database import SessionLocal
from app.models.strategy import Strategy, StrategyVideo
from app.models.wallet import WalletOwnerType, SYSTEM_WALLET_OWNER_ID
from app.services.wallets import get_or_create_wallet

STRATEGIES = [
    {
        "number": 1,
        "name": "Foundations",
        "price": 50,
        "expected_weeks": 4,
        "tags": ["beginner"],
        "videos": ["Welcome", "Market structure", "Risk basics"],
    },
    {
        "number": 2,
        "name": "Swing Playbook",
        "price": 100,
        "expected_weeks": 6,
        "tags": ["intermediate"],
        "videos": ["Setups", "Entries and exits", "Position sizing", "Review routine"],
    },
    {
        "number": 3,
        "name": "Advanced Execution",
        "price": 150,
        "expected_weeks": 8,
        "tags": ["advanced"],
        "videos": ["Order flow", "Scaling", "Journaling", "Live session"],
    },
]

db = SessionLocal()
try:
    for s in STRATEGIES:
        strategy = db.query(Strategy).filter(Strategy.number == s["number"]).first()

        if not strategy:
            strategy = Strategy(
                number=s["number"],
                name=s["name"],
                price=s["price"],
                expected_weeks=s["expected_weeks"],
                tags=s["tags"],
                is_active=True,
            )
            db.add(strategy)
            db.flush()
            print(f"  Created: {s['name']}")
        else:
            print(f"  Exists:  {s['name']}")

        existing_orders = {v.order for v in strategy.videos}
        for order, title in enumerate(s["videos"]):
            if order not in existing_orders:
                db.add(StrategyVideo(strategy_id=strategy.id, order=order, title=title, is_visible=True))
                print(f"    + video {order}: {title}")

    get_or_create_wallet(db, SYSTEM_WALLET_OWNER_ID, WalletOwnerType.SYSTEM, "System Wallet")
    db.commit()
    print("\nDone.")
finally:
    db.close()
