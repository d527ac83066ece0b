from screentext.server.database.sql import SQLStore

__all__ = ["SQLStore"]
