"""Composing and cancelling Tasks.

This example drives one generator program two ways and shows cooperative
cancellation reaching the step that is in flight.

Key concepts:
- Wrap a callback-style operation as a producer (here a timer standing in for
  a network fetch)
- Compose a program with @do; each ``yield`` waits on one Task
- Dispose the resulting Task mid-flight and watch the pending timer get
  cancelled
- Run the same program eagerly as an asyncio.Future

Run with: python examples/cancellation_demo.py  (COTASK_DEBUG=1 for driver logs)
"""

import asyncio

from cotask import Subscription, Task, do


# ============================================================================
# Step 1: A producer standing in for an I/O call
# ============================================================================


def fetch(name: str, seconds: float) -> Task[str]:
    def producer(deliver_value, deliver_error):
        loop = asyncio.get_running_loop()
        print(f"  fetch({name!r}) started")
        handle = loop.call_later(seconds, deliver_value, f"<{name}>")

        def cancel():
            print(f"  fetch({name!r}) cancelled")
            handle.cancel()

        return Subscription(cancel)

    return Task(producer)


# ============================================================================
# Step 2: A program with two suspension points
# ============================================================================


@do
def profile_page(user: str):
    account = yield fetch(f"account:{user}", 0.05)
    print(f"  got {account}")
    posts = yield fetch(f"posts:{user}", 0.5)
    return f"{account} + {posts}"


@do(asyncio.Future)
def eager_profile_page(user: str):
    account = yield fetch(f"account:{user}", 0.05)
    return account.upper()


async def main() -> None:
    print("1) run to completion")
    print("  result:", await profile_page("ada"))

    print("2) dispose while waiting on the second fetch")
    task = profile_page("grace")
    subscription = task.get(print, print)
    await asyncio.sleep(0.1)
    subscription.dispose()
    await asyncio.sleep(0.6)
    print("  settled?", task.done())

    print("3) same program shape as an eager asyncio.Future")
    print("  result:", await eager_profile_page("linus"))


if __name__ == "__main__":
    asyncio.run(main())
