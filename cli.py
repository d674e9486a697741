#!/usr/bin/env python3
"""
Command-line interface for the storefront order-notification service.

Usage:
    uv run python cli.py [command] [options]

Commands:
    demo        Place a sample order and show what the admin's devices got
    serve       Start the API server
    test        Run the test suite

Examples:
    uv run python cli.py demo
    uv run python cli.py demo --dead-token token-old-tablet --total 1234.5
    uv run python cli.py serve --reload
"""

import argparse
import subprocess
import sys


def run_demo(total: float, dead_tokens: list[str], transient_tokens: list[str]) -> None:
    """Place one order against the JSON fixtures with the mock push provider."""
    from notifier.event_bus import EventBus
    from notifier.events import EventTypes
    from notifier.order_notifications import OrderNotificationDispatcher
    from notifier.services.checkout import CheckoutService
    from shared.channels import (
        REGISTRATION_TOKEN_NOT_REGISTERED,
        SERVER_UNAVAILABLE,
        PushChannel,
    )
    from shared.config import get_settings
    from shared.data_store import DataStore
    from shared.models import OrderItem, ShippingInfo

    settings = get_settings()
    data_store = DataStore(data_dir=settings.data_dir)
    push = PushChannel()
    for token in dead_tokens:
        push.fail_token(token, REGISTRATION_TOKEN_NOT_REGISTERED)
    for token in transient_tokens:
        push.fail_token(token, SERVER_UNAVAILABLE)

    bus = EventBus(max_deliveries=settings.max_deliveries)
    dispatcher = OrderNotificationDispatcher(
        event_bus=bus, data_store=data_store, push_channel=push, settings=settings,
    )
    outcomes = []
    bus.subscribe(EventTypes.ORDER_CREATED, lambda e: outcomes.append(
        dispatcher.dispatch(e.payload["order_id"], e.payload["order"])
    ))

    admin = data_store.get_user_by_email(settings.admin_email)
    before = data_store.get_profile(admin.uid).fcm_settings.tokens if admin else []

    order = CheckoutService(event_bus=bus, data_store=data_store, settings=settings).place_order(
        user_id="cust-uid-001",
        shipping_info=ShippingInfo(name="Ayesha Khan", email="ayesha.khan@example.com"),
        items=[OrderItem(product_id="demo-item", name="Demo Item", quantity=1, price=total)],
    )

    print(f"\nOrder placed: {order.id} ({settings.currency} {order.total_price:.2f})")
    for outcome in outcomes:
        print(f"Dispatch: {outcome.status.value}")
        print(f"  delivered: {outcome.success_count}, failed: {outcome.failure_count}")
        if outcome.pruned_tokens:
            print(f"  pruned: {', '.join(outcome.pruned_tokens)}")
    batch = push.last_batch()
    if batch:
        print(f"Push: {batch.message.title} | {batch.message.body}")
        for response in batch.result.responses:
            print(f"  {response}")
    if admin:
        after = data_store.get_profile(admin.uid).fcm_settings.tokens
        print(f"Admin tokens: {before} -> {after}")
    for mail in data_store.get_mail():
        print(f"Mail to {', '.join(mail.to)}: {mail.subject}")


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Storefront order-notification CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo
  %(prog)s demo --dead-token token-old-tablet --transient-token token-phone
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    demo_parser = subparsers.add_parser("demo", help="Place a sample order")
    demo_parser.add_argument("--total", type=float, default=1234.5, help="Order total")
    demo_parser.add_argument(
        "--dead-token",
        action="append",
        default=[],
        help="Token the provider reports as unregistered (repeatable)",
    )
    demo_parser.add_argument(
        "--transient-token",
        action="append",
        default=[],
        help="Token the provider fails transiently (repeatable)",
    )

    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    if args.command == "demo":
        from shared.config import configure_logging, get_settings
        configure_logging(get_settings().log_level)
        if args.total < 0:
            print("Order total must not be negative")
            sys.exit(1)
        run_demo(args.total, args.dead_token, args.transient_token)
    elif args.command == "test":
        run_tests(args.pytest_args)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
