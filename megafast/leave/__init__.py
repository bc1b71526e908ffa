"""Leave ledger: categories, requests, balances and the approval workflow."""
