"""SQLite-backed models for users, settings, newsletter, products, styles, orders and restock requests."""