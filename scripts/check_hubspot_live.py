#!/usr/bin/env python3
"""Quick live check of the HubSpot connector against a real account.

Run:
  HUBSPOT_TOKEN=pat-... poetry run python scripts/check_hubspot_live.py            # deals
  HUBSPOT_TOKEN=pat-... poetry run python scripts/check_hubspot_live.py contacts   # one object type
"""

import sys
from itertools import islice

from hubspot_sync.connectors import HubSpotConnector, StreamOptions
from hubspot_sync.models.config import ConnectorConfig
from hubspot_sync.transform.normalizer import DEFAULT_PROPERTIES, normalize


def main() -> None:
    object_type = sys.argv[1] if len(sys.argv) > 1 else "deals"
    connector = HubSpotConnector(ConnectorConfig.from_env())
    options = StreamOptions(properties=list(DEFAULT_PROPERTIES.get(object_type, ())), page_size=5)

    print(f"Fetching up to 5 {object_type}...")
    with connector.session():
        records = list(islice(connector.stream(object_type, options), 5))

    print(f"Got {len(records)} raw {object_type}")
    for i, raw in enumerate(records, 1):
        result = normalize(raw)
        if result.ok:
            print(f"  {i}. {raw.id}: {result.record.model_dump(include={'id', 'created_at', 'last_modified_at'})}")
        else:
            print(f"  {i}. {raw.id}: not normalized ({result.error})")


if __name__ == "__main__":
    main()
