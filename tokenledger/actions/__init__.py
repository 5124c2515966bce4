"""Actions that change the ledger state: transfers, assets, orders, exports and imports."""