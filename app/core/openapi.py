"""
OpenAPI schema customizations for drf-spectacular.

Groups operations into documentation tags by URL path so ReDoc shows one
section per area.

Tag naming follows the pattern: [App Name] - [Group Name]
Examples:
- Orders
- Settlement - Wallets (wallet balances, history, earnings)
- Settlement - Withdrawals (requests and admin review)
- Settlement - Distribution (manual split trigger)
"""

# Path fragment -> tag, checked in order
PATH_TAGS = [
    ("/settlement/withdrawals/", "Settlement - Withdrawals"),
    ("/settlement/wallets/", "Settlement - Wallets"),
    ("/settlement/earnings/", "Settlement - Wallets"),
    ("/settlement/orders/", "Settlement - Distribution"),
    ("/orders/", "Orders"),
]

TAG_DESCRIPTIONS = {
    "Orders": "Customer order creation and lookup.",
    "Settlement - Wallets": "Wallet balances, transaction history and seller earnings.",
    "Settlement - Withdrawals": "Withdrawal requests, admin review and Paystack transfers.",
    "Settlement - Distribution": "Manual payment confirmation and order distribution (staff only).",
}


def group_endpoints(result, generator, request, public):
    """
    Postprocessing hook to tag API endpoints by path.

    Operations that match no entry in PATH_TAGS keep drf-spectacular's
    default tag.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        tag = next((t for fragment, t in PATH_TAGS if fragment in path), None)
        if tag is None:
            continue
        for operation in methods.values():
            if isinstance(operation, dict):
                operation["tags"] = [tag]

    result["tags"] = [
        {"name": name, "description": description}
        for name, description in TAG_DESCRIPTIONS.items()
    ]
    return result
