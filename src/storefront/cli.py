"""Command-line interface for storefront."""

import argparse
import json
import logging
import sys

from . import __version__
from .address_service import AddressService
from .address_store import AddressStore
from .coordinator import OrderPaymentCoordinator
from .errors import StorefrontError
from .models import Address, Order
from .order_store import OrderStore
from .payment import SimulatedPaymentProvider
from .utils import format_address


def get_address_service() -> AddressService:
    return AddressService(AddressStore())


def get_coordinator() -> OrderPaymentCoordinator:
    return OrderPaymentCoordinator(OrderStore(), SimulatedPaymentProvider())


def format_address_line(address: Address) -> str:
    flags = []
    if address.is_default:
        flags.append("default")
    if address.is_current:
        flags.append("current")
    flag_str = f" [{', '.join(flags)}]" if flags else ""
    return f"{address.id[:8]}  {address.address_type:<5}  {format_address(address)}{flag_str}"


def format_order_line(order: Order) -> str:
    return (
        f"{order.order_number}  {order.created_at[:19]}  "
        f"{order.summary.total_amount:>10.2f}  {order.status:<9}  {order.payment_status}"
    )


def _resolve_address_id(service: AddressService, customer_id: str, prefix: str) -> str:
    """Resolve an address ID prefix (as printed by 'addresses list')."""
    matches = [a.id for a in service.list(customer_id) if a.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    # Let the service raise AddressNotFoundError for zero or ambiguous matches
    return prefix


def _address_fields(args: argparse.Namespace) -> dict:
    fields = {
        "full_name": args.name,
        "mobile_number": args.mobile,
        "street_address": args.street,
        "city": args.city,
        "state": args.state,
        "postal_code": args.postal_code,
        "country": args.country,
        "address_type": args.type,
    }
    if getattr(args, "default", False):
        fields["is_default"] = True
    if getattr(args, "current", False):
        fields["is_current"] = True
    if getattr(args, "no_default", False):
        fields["is_default"] = False
    if getattr(args, "no_current", False):
        fields["is_current"] = False
    return fields


def cmd_addresses_list(args: argparse.Namespace) -> int:
    """List a customer's addresses."""
    try:
        addresses = get_address_service().list(args.customer)

        if args.json:
            print(json.dumps([a.to_dict() for a in addresses], indent=2))
            return 0

        if not addresses:
            print("No addresses.")
            return 0

        for address in addresses:
            print(format_address_line(address))
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_addresses_add(args: argparse.Namespace) -> int:
    """Add an address."""
    try:
        address = get_address_service().create(args.customer, _address_fields(args))
        print(f"Added address: {address.id}")
        print(f"  {format_address_line(address)}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_addresses_update(args: argparse.Namespace) -> int:
    """Update address fields."""
    try:
        service = get_address_service()
        address_id = _resolve_address_id(service, args.customer, args.address_id)
        fields = {k: v for k, v in _address_fields(args).items() if v is not None}
        address = service.update(args.customer, address_id, fields)
        print(f"Updated address: {address.id}")
        print(f"  {format_address_line(address)}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_addresses_remove(args: argparse.Namespace) -> int:
    """Delete an address."""
    try:
        service = get_address_service()
        address_id = _resolve_address_id(service, args.customer, args.address_id)
        address = service.delete(args.customer, address_id)
        print(f"Removed address: {address.id}")
        current = service.get_current(args.customer)
        if address.is_current:
            print(f"Current address is now: {current.id if current else 'none'}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_addresses_set_default(args: argparse.Namespace) -> int:
    try:
        service = get_address_service()
        address_id = _resolve_address_id(service, args.customer, args.address_id)
        address = service.set_default(args.customer, address_id)
        print(f"Default address: {address.id}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_addresses_set_current(args: argparse.Namespace) -> int:
    try:
        service = get_address_service()
        address_id = _resolve_address_id(service, args.customer, args.address_id)
        address = service.set_current(args.customer, address_id)
        print(f"Current address: {address.id}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List a customer's orders, newest first."""
    try:
        orders, total = get_coordinator().list_orders(args.customer, page=args.page, limit=args.limit)

        if args.json:
            print(json.dumps({"orders": [o.to_dict() for o in orders], "total": total}, indent=2))
            return 0

        if not orders:
            print("No orders.")
            return 0

        for order in orders:
            print(format_order_line(order))
        print(f"\n{len(orders)} of {total} order(s)")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show one order with its payment attempts."""
    try:
        coordinator = get_coordinator()
        order = coordinator.get_order(args.customer, args.order_id)
        payments = coordinator.list_payments(args.customer, args.order_id)

        if args.json:
            data = order.to_dict()
            data["payments"] = [p.to_dict() for p in payments]
            print(json.dumps(data, indent=2))
            return 0

        print(f"Order {order.order_number} ({order.id})")
        print(f"  Status:   {order.status} / payment {order.payment_status} ({order.payment_method})")
        print(f"  Ship to:  {format_address(order.shipping_address)}")
        for item in order.items:
            print(f"  - {item.quantity} x {item.name} @ {item.unit_price:.2f} = {item.total_price:.2f}")
        s = order.summary
        print(f"  Subtotal: {s.subtotal:.2f}")
        print(f"  Tax:      {s.tax_amount:.2f}")
        print(f"  Shipping: {s.shipping_charge:.2f}")
        if s.discount_amount:
            print(f"  Discount: -{s.discount_amount:.2f}")
        print(f"  Total:    {s.total_amount:.2f}")
        for p in payments:
            reason = f" ({p.failure_reason})" if p.failure_reason else ""
            print(f"  Payment {p.transaction_id}: {p.status}{reason}")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("Starting storefront API server...")
    print(f"API docs: http://{args.host}:{args.port}/docs")
    uvicorn.run(
        "storefront.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


def _add_address_arguments(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--name", required=required, help="Full name")
    parser.add_argument("--mobile", required=required, help="10-digit mobile number")
    parser.add_argument("--street", required=required, help="Street address")
    parser.add_argument("--city", required=required, help="City")
    parser.add_argument("--state", required=required, help="State")
    parser.add_argument("--postal-code", dest="postal_code", required=required, help="6-digit postal code")
    parser.add_argument("--country", default="India" if required else None, help="Country (default: India)")
    parser.add_argument(
        "--type",
        choices=["home", "work", "other"],
        default="home" if required else None,
        help="Address type",
    )
    default_group = parser.add_mutually_exclusive_group()
    default_group.add_argument("--default", action="store_true", help="Make this the default address")
    current_group = parser.add_mutually_exclusive_group()
    current_group.add_argument("--current", action="store_true", help="Make this the current address")
    if not required:
        default_group.add_argument(
            "--no-default", dest="no_default", action="store_true",
            help="Clear the default flag (leaves no default address)",
        )
        current_group.add_argument(
            "--no-current", dest="no_current", action="store_true",
            help="Hand the current flag to another address",
        )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Manage delivery addresses and orders",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    customer_parser = argparse.ArgumentParser(add_help=False)
    customer_parser.add_argument("--customer", "-c", required=True, help="Customer ID")

    # addresses (subcommand group)
    addresses_parser = subparsers.add_parser("addresses", help="Manage delivery addresses")
    addresses_subparsers = addresses_parser.add_subparsers(dest="addresses_command")

    addresses_list_parser = addresses_subparsers.add_parser(
        "list", parents=[customer_parser], help="List addresses"
    )
    addresses_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    addresses_add_parser = addresses_subparsers.add_parser(
        "add", parents=[customer_parser], help="Add an address"
    )
    _add_address_arguments(addresses_add_parser, required=True)

    addresses_update_parser = addresses_subparsers.add_parser(
        "update", parents=[customer_parser], help="Update an address"
    )
    addresses_update_parser.add_argument("address_id", help="Address ID (or prefix)")
    _add_address_arguments(addresses_update_parser, required=False)

    for name, help_text in (
        ("remove", "Delete an address"),
        ("set-default", "Make an address the default"),
        ("set-current", "Make an address current"),
    ):
        sub = addresses_subparsers.add_parser(name, parents=[customer_parser], help=help_text)
        sub.add_argument("address_id", help="Address ID (or prefix)")

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Inspect orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    orders_list_parser = orders_subparsers.add_parser(
        "list", parents=[customer_parser], help="List orders"
    )
    orders_list_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    orders_list_parser.add_argument("--limit", type=int, default=10, help="Page size (default: 10)")
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    orders_show_parser = orders_subparsers.add_parser(
        "show", parents=[customer_parser], help="Show an order"
    )
    orders_show_parser.add_argument("order_id", help="Order ID")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )
    serve_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "addresses":
        if not getattr(args, "addresses_command", None):
            parser.parse_args(["addresses", "--help"])
            return 0
        commands = {
            "list": cmd_addresses_list,
            "add": cmd_addresses_add,
            "update": cmd_addresses_update,
            "remove": cmd_addresses_remove,
            "set-default": cmd_addresses_set_default,
            "set-current": cmd_addresses_set_current,
        }
        return commands[args.addresses_command](args)

    if args.command == "orders":
        if not getattr(args, "orders_command", None):
            parser.parse_args(["orders", "--help"])
            return 0
        if args.orders_command == "list":
            return cmd_orders_list(args)
        elif args.orders_command == "show":
            return cmd_orders_show(args)

    if args.command == "serve":
        return cmd_serve(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
