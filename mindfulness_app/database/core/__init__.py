"""
The `core` package owns the database engine and the multi-step,
RPC-style write operations (`funcs`) that span more than one table.
"""
