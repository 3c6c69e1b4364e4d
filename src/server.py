"""Protean Engine runner for the billing domain.

Starts Engine workers that process events asynchronously when the domain
runs with ``event_processing = "async"`` (production):
- OutboxProcessor: polls outbox table, publishes events to the broker
- StreamSubscriptions: reads the broker, invokes the billing projectors

Usage:
    python src/server.py
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    """Import and initialize the billing domain."""
    from billing.domain import billing

    billing.init()
    return billing


async def run():
    engine = Engine(_get_domain())
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="Billing Engine runner")
    parser.parse_args()

    asyncio.run(run())


if __name__ == "__main__":
    main()
