"""
Order Execution Layer

Turns engine ENTRY/EXIT executions into real-world orders. Every venue
implements the OrderExecutor abstract base class; the OrderRouter picks the
venue by track direction.

Usage:
    from breakout_engine.exchange_clients.order_router import build_order_router

    router = build_order_router(settings)
    await router.execute(request)
"""
