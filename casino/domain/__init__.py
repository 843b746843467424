"""Domain layer (pure logic).

- Seeds, seeded outcomes, hand ranking and payout arithmetic live here.
- Avoid I/O: no DB sessions, no HTTP/FastAPI, no Redis, no transfers.
- Functions are deterministic; seeds and clocks are passed in as arguments.
"""
