import json
import logging
from typing import Iterable, List, Optional, Tuple

from pydantic import TypeAdapter

from kioskinstall.domain.store import Store

logger = logging.getLogger(__name__)

DEFAULT_DISTRICTS = ('North District', 'South District', 'East District', 'West District')

DEFAULT_STORES = (
    Store(id='1', district='North District', store_number='101',
          store_name='Grand Central Kiosk', address='123 Main St, New York, NY'),
    Store(id='2', district='North District', store_number='102',
          store_name='Uptown Mall Kiosk', address='456 Broadway, New York, NY'),
    Store(id='3', district='South District', store_number='201',
          store_name='Downtown Plaza', address='789 Market St, San Francisco, CA'),
    Store(id='4', district='East District', store_number='301',
          store_name='Harbor Point', address='101 Ocean Dr, Miami, FL'),
    Store(id='5', district='West District', store_number='401',
          store_name='Sunset Blvd Hub', address='555 Sunset Blvd, Los Angeles, CA'),
)

_stores_adapter = TypeAdapter(List[Store])


class StoreDirectory:
    """Read-only lookup over store reference data."""

    def __init__(self, stores: Iterable[Store] = DEFAULT_STORES, districts: Optional[Iterable[str]] = None):
        self._stores: Tuple[Store, ...] = tuple(stores)
        if districts is None:
            districts = dict.fromkeys(store.district for store in self._stores)
        self._districts: Tuple[str, ...] = tuple(districts)
        self._by_id = {store.id: store for store in self._stores}

    @classmethod
    def from_json_file(cls, path: str) -> "StoreDirectory":
        """
        Load {"districts": [...], "stores": [...]} from disk.

        Store entries use the same field names as the Store model.
        """
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        stores = _stores_adapter.validate_python(data.get('stores', []))
        logger.info(f"Loaded {len(stores)} stores from {path}")
        return cls(stores, data.get('districts'))

    @classmethod
    def default(cls) -> "StoreDirectory":
        return cls(DEFAULT_STORES, DEFAULT_DISTRICTS)

    def districts(self) -> Tuple[str, ...]:
        return self._districts

    def stores(self, district: Optional[str] = None) -> Tuple[Store, ...]:
        if district is None:
            return self._stores
        return tuple(store for store in self._stores if store.district == district)

    def get(self, store_id: Optional[str]) -> Optional[Store]:
        return self._by_id.get(store_id)
