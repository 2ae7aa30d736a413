"""Owner-only helper to grant a subscription without a payment.

Usage:
  python tools/grant_subscription.py <SUBJECT_ID> personal Premium <MONTHS>
  python tools/grant_subscription.py <GUILD_ID> guild Server <MONTHS>

Loads the subscriptions table, stacks the months on any time still left, and
writes the row back. A running bot only sees the change after a restart.
"""

import asyncio
import sys


async def main() -> int:
    if len(sys.argv) != 5:
        print("Usage: python tools/grant_subscription.py <SUBJECT_ID> <personal|guild> <Premium|Server> <MONTHS>")
        return 2
    if not sys.argv[1].isdigit() or not sys.argv[4].isdigit():
        print("SUBJECT_ID and MONTHS must be numbers")
        return 2

    subject_id = int(sys.argv[1])
    scope = sys.argv[2].strip().lower()
    tier = sys.argv[3].strip().capitalize()
    months = int(sys.argv[4])

    from utils.subscription_db import load_subscriptions, save_subscription
    from utils.subscription_store import SubscriptionStore

    store = SubscriptionStore()
    try:
        await load_subscriptions(store)
        sub = store.grant(subject_id, scope, tier, months, 0.0, "manual:cli")
    except ValueError as e:
        print(f"Error: {e}")
        return 2
    await save_subscription(sub)

    print(f"OK: {scope} {subject_id} tier={sub.tier} end_time={int(sub.end_time)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
