"""
Settlement app.

Turns confirmed customer payments into seller, rider and platform wallet
balances, and pays those balances out to bank accounts.

Modules:
    - commission: Roles and the commission table
    - ledger: Wallets and the append-only transaction log
    - services: Distribution engine, withdrawals, earnings
    - webhooks: Paystack webhook gateway
    - adapters: Paystack API adapter
"""
