"""JSON file persistence -- whole-document store and half-year shards."""

from pulsefeed.storage.files import JsonFileStore
from pulsefeed.storage.shards import ShardedArchive, half_year_key

__all__ = ["JsonFileStore", "ShardedArchive", "half_year_key"]
