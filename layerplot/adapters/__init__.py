from .normalize import read_csv, to_table

__all__ = ["read_csv", "to_table"]
