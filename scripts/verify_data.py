"""Print every stored debt with its status and payment count."""
import asyncio
import sys

from app.core.logging import configure_logging
from app.db.mongo import close_mongo_connection, connect_to_mongo, get_db
from app.repositories.debt_repo import DebtStore


async def verify() -> int:
    await connect_to_mongo()
    try:
        store = DebtStore(get_db())
        debts, total = await store.list_debts(limit=0, sort_order="asc")
        print(f"\nTotal debts in database: {total}\n")
        for debt in debts:
            records = await store.list_payment_records(debt.id)
            print(f"- {debt.name} ({debt.email})")
            print(f"  Subject: {debt.subject}")
            print(f"  Amount:  {debt.amount}")
            print(f"  Status:  {debt.status.value}")
            if debt.external_ref:
                print(f"  Payment: {debt.external_ref} ({len(records)} record(s))")
            print("")
    finally:
        await close_mongo_connection()
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(verify()))
