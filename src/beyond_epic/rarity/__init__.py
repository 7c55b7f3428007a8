from .catalog import default_rarity_table, load_rarity_table, rarity_table_from_dict, validate_rarity_table_dict
from .table import RarityTable, RarityTier, rarity_table_from_entries

__all__ = [
    "RarityTable",
    "RarityTier",
    "rarity_table_from_entries",
    "default_rarity_table",
    "load_rarity_table",
    "rarity_table_from_dict",
    "validate_rarity_table_dict",
]
