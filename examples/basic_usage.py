"""
Basic securelink usage example.

This example demonstrates the core delivery-link operations without the
HTTP server:
- Creating a link limited by time and use count
- Redeeming it until it is exhausted
- Binding and verifying a license
- Reading the access log
"""

import asyncio

from securelink import AccessLogger, BindingManager, LinkEngine
from securelink.errors import LinkExhaustedError
from securelink.store import MemoryRecordStore


async def basic_example():
    """Demonstrate basic securelink usage"""
    print("Basic securelink Example")
    print("=" * 30)

    store = MemoryRecordStore()
    engine = LinkEngine(store, base_url="https://links.example.com")
    bindings = BindingManager(store)
    access_log = AccessLogger(store)

    created = await engine.create(
        "https://files.example.com/releases/indicator.ex5",
        program_id="indicator",
        expiry_minutes=30,
        max_uses=2,
        account_login="1234567",
    )
    print(f"✓ Secure link created: {created.secure_link}")

    for _ in range(2):
        redemption = await engine.redeem(created.token_id, "indicator", "1234567")
        await access_log.append("indicator", "1234567", created.token_id,
                                {"ip": "127.0.0.1", "userAgent": "example"})
        print(f"✓ Redeemed, {redemption.remaining_uses} use(s) left -> {redemption.target}")

    try:
        await engine.redeem(created.token_id, "indicator", "1234567")
    except LinkExhaustedError as e:
        print(f"✓ Third redemption refused: {e.message}")

    entries = await access_log.entries("indicator", "1234567", created.token_id)
    print(f"✓ Access log entries: {len(entries)}")

    await bindings.bind("indicator", "1234567", days=30, is_demo=True)
    status = await bindings.verify("indicator", "1234567")
    print(f"✓ Binding verified: {status.to_dict()}")

    removed, remaining = await engine.reclaim()
    print(f"✓ Sweep removed {removed} link(s), {remaining} remaining")


if __name__ == "__main__":
    asyncio.run(basic_example())
